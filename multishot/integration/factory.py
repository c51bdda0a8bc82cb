"""Integrator factory and dispatch logic."""

from multishot.control.spliner import ShotControl
from multishot.core.errors import ConfigurationError
from multishot.core.settings import IntegrationType
from multishot.core.system import ControlledSystem
from multishot.integration.sensitivity import SensitivityIntegrator
from multishot.integration.tableau import ButcherTableau, explicit_euler, rk4

_TABLEAUX = {
    IntegrationType.EULER: explicit_euler,
    IntegrationType.RK4: rk4,
}


def tableau_for(integration_type: IntegrationType) -> ButcherTableau:
    """
    Fixed-step tableau for a stepping scheme selector.

    Raises:
        ConfigurationError: adaptive or unknown schemes
    """
    if integration_type is IntegrationType.RK5:
        raise ConfigurationError(
            "Adaptive integrators are not supported in multiple shooting"
        )
    try:
        return _TABLEAUX[integration_type]()
    except (KeyError, TypeError):
        raise ConfigurationError(
            f"Unknown integration type {integration_type!r}"
        ) from None


def create_sensitivity_integrator(
    integration_type: IntegrationType,
    system: ControlledSystem,
    control: ShotControl,
) -> SensitivityIntegrator:
    """
    Build the stepper owned by one shot.

    Args:
        integration_type: Stepping scheme selector
        system: Nonlinear dynamics
        control: Control signal of the shot

    Returns:
        A fresh integrator (never shared between shots)
    """
    return SensitivityIntegrator(system, tableau_for(integration_type), control)
