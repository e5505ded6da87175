"""Single-flight guards for chat-bot interaction handlers."""

from .core.operations import FlightRegistry, FlightResult, OperationKey, SingleFlightGuard

__version__ = "0.1.0"

__all__ = [
    "FlightRegistry",
    "FlightResult",
    "OperationKey",
    "SingleFlightGuard",
    "__version__",
]
