# core/exceptions.py
import numpy as np


class HFApplyError(Exception):
    """Base exception for factorization apply errors."""
    pass

class InvalidArgumentError(HFApplyError, ValueError):
    """Raised when a mode literal, argument shape or selection is malformed."""
    pass

class SingularFactorError(HFApplyError, np.linalg.LinAlgError):
    """Raised when a local factor has a zero or near-zero pivot."""
    pass

class ConfigError(HFApplyError):
    """Raised when an engine configuration cannot be loaded or validated."""
    pass
