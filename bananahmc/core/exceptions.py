"""
Error types raised by bananahmc.

All of them are input-validation failures raised eagerly, at construction or
on entry to a sampling call. Numerical divergence during integration is not
an error: the sampler rejects the move instead.
"""


class BananaHMCError(Exception):
    """Base class for all bananahmc errors."""


class InvalidParameterError(BananaHMCError, ValueError):
    """Target density shape parameters are out of their valid range."""


class InvalidStepSizeError(BananaHMCError, ValueError):
    """Leapfrog step size is not a positive finite number."""


class InvalidStepCountError(BananaHMCError, ValueError):
    """Number of leapfrog steps is smaller than one."""


class InvalidSampleCountError(BananaHMCError, ValueError):
    """Requested number of samples (or warmup iterations) is invalid."""
