"""
Error taxonomy for the performance model.

Every failure is synchronous and terminal for the call that raised it.
The concrete classes also derive from the builtin they specialise
(LookupError / ValueError) so callers catching those keep working.
"""


class PerfModelError(Exception):
    """Base class for all engine errors."""


class NotFoundError(PerfModelError, LookupError):
    """Unknown operation identifier or hardware key."""

    def __str__(self) -> str:
        # LookupError.__str__ would repr() the message like KeyError does
        return str(self.args[0]) if self.args else ""


class UnsupportedOperationError(PerfModelError, ValueError):
    """Operation kind other than matmul."""


class MissingConfigurationError(PerfModelError, ValueError):
    """Multi-device analysis requested without a sharding configuration."""


class InvalidOperationError(PerfModelError, ValueError):
    """Malformed operand shapes or element types."""


class InvalidShardingError(PerfModelError, ValueError):
    """Sharding configuration with bad device count or dimensions."""


class InvalidHardwareError(PerfModelError, ValueError):
    """Hardware constants that cannot describe a real device."""
