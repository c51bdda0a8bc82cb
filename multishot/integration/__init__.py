"""Sensitivity-capable stepping schemes."""

from multishot.integration.tableau import ButcherTableau, explicit_euler, rk4
from multishot.integration.sensitivity import SensitivityIntegrator
from multishot.integration.factory import create_sensitivity_integrator

__all__ = [
    "ButcherTableau",
    "explicit_euler",
    "rk4",
    "SensitivityIntegrator",
    "create_sensitivity_integrator",
]
