from .logger import get_logger, setup_logging
from .cancellation import CancellationToken, OperationCancelledError

__all__ = [
    "get_logger",
    "setup_logging",
    "CancellationToken",
    "OperationCancelledError",
]
