"""Control parameterization."""

from multishot.control.spliner import ControlSpliner, ShotControl

__all__ = [
    "ControlSpliner",
    "ShotControl",
]
