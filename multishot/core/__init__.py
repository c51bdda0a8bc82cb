"""Core abstractions: configuration, models, time grid and decision vector."""

from multishot.core.errors import (
    MultishotError,
    ConfigurationError,
    ConstraintError,
    CapabilityError,
    NumericalError,
)
from multishot.core.settings import (
    IntegrationType,
    SplineType,
    CostEvaluationType,
    LQOCSolverType,
    ShootingSettings,
)
from multishot.core.system import ControlledSystem, LinearSystem, LinearTimeInvariantSystem
from multishot.core.cost import CostFunction, QuadraticCost
from multishot.core.time_grid import TimeGrid
from multishot.core.decision_vector import DecisionVector

__all__ = [
    "MultishotError",
    "ConfigurationError",
    "ConstraintError",
    "CapabilityError",
    "NumericalError",
    "IntegrationType",
    "SplineType",
    "CostEvaluationType",
    "LQOCSolverType",
    "ShootingSettings",
    "ControlledSystem",
    "LinearSystem",
    "LinearTimeInvariantSystem",
    "CostFunction",
    "QuadraticCost",
    "TimeGrid",
    "DecisionVector",
]
