"""Shooting configuration."""

from dataclasses import dataclass, fields
from enum import Enum, auto
from typing import Any, Mapping, Optional

from multishot.core.errors import ConfigurationError


class IntegrationType(Enum):
    """Stepping scheme used inside a shot."""
    EULER = auto()
    RK4 = auto()
    RK5 = auto()   # adaptive, rejected by the integrator factory


class SplineType(Enum):
    """Control parameterization between grid points."""
    PIECEWISE_CONSTANT = auto()
    PIECEWISE_LINEAR = auto()


class CostEvaluationType(Enum):
    """Whether shots integrate the cost."""
    FULL = auto()
    NONE = auto()


class LQOCSolverType(Enum):
    """Backend for the LQ subproblem."""
    RICCATI = auto()
    INTERIOR_POINT = auto()


_ENUM_FIELDS = {
    "integration_type": IntegrationType,
    "spline_type": SplineType,
    "cost_evaluation_type": CostEvaluationType,
    "lqoc_solver": LQOCSolverType,
}


@dataclass(frozen=True)
class ShootingSettings:
    """Settings shared by all shots of one multiple-shooting discretization."""

    n_shots: int = 5
    t_final: float = 5.0
    integration_type: IntegrationType = IntegrationType.RK4
    dt_sim: float = 0.01
    cost_evaluation_type: CostEvaluationType = CostEvaluationType.FULL
    spline_type: SplineType = SplineType.PIECEWISE_CONSTANT
    lqoc_solver: LQOCSolverType = LQOCSolverType.RICCATI
    max_workers: Optional[int] = None

    def __post_init__(self) -> None:
        if not isinstance(self.n_shots, int) or self.n_shots < 1:
            raise ConfigurationError(
                f"n_shots must be a positive integer, got {self.n_shots!r}"
            )
        if not self.t_final > 0:
            raise ConfigurationError(f"t_final must be positive, got {self.t_final!r}")
        if not self.dt_sim > 0:
            raise ConfigurationError(f"dt_sim must be positive, got {self.dt_sim!r}")
        if self.max_workers is not None and self.max_workers < 1:
            raise ConfigurationError(
                f"max_workers must be None or >= 1, got {self.max_workers!r}"
            )
        for name, enum_type in _ENUM_FIELDS.items():
            if not isinstance(getattr(self, name), enum_type):
                raise ConfigurationError(
                    f"{name} must be a {enum_type.__name__}, "
                    f"got {getattr(self, name)!r}"
                )

    @property
    def n_controls(self) -> int:
        """Number of control parameters q_i actually used by the spline."""
        if self.spline_type is SplineType.PIECEWISE_LINEAR:
            return self.n_shots + 1
        return self.n_shots

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "ShootingSettings":
        """
        Build settings from a plain mapping (e.g. parsed JSON/TOML).

        Enum-valued options may be given by member name, case-insensitively.

        Args:
            config: Option name to value

        Returns:
            Validated settings
        """
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ConfigurationError(f"Unknown settings: {sorted(unknown)}")

        kwargs = dict(config)
        for name, enum_type in _ENUM_FIELDS.items():
            value = kwargs.get(name)
            if isinstance(value, str):
                try:
                    kwargs[name] = enum_type[value.upper()]
                except KeyError:
                    raise ConfigurationError(
                        f"Unknown {name} {value!r}; expected one of "
                        f"{[m.name for m in enum_type]}"
                    ) from None
        return cls(**kwargs)
