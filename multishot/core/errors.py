"""Error taxonomy for shooting and LQ subproblem solves."""


class MultishotError(Exception):
    """Base class for all errors raised by multishot."""


class ConfigurationError(MultishotError, ValueError):
    """Invalid static setup (bad shot index, unsupported stepping scheme)."""


class ConstraintError(MultishotError, ValueError):
    """Malformed box-constraint bounds."""


class CapabilityError(MultishotError, RuntimeError):
    """A solver backend was given a problem shape it cannot handle."""


class NumericalError(MultishotError, ArithmeticError):
    """Ill-conditioned quantities encountered during a solve."""
