import functools
import logging
import time

from apps.utils.exceptions import BusinessLogicException

logger = logging.getLogger(__name__)


class logged_operation:
    """
    Logs unexpected failures of a ledger operation with its call context
    and elapsed time, then re-raises. Domain errors pass through untouched.

    Place it OUTSIDE transaction.atomic so the rollback has already
    happened when the failure is logged.
    """

    def __init__(self, operation_name):
        self.operation_name = operation_name

    def __call__(self, func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.monotonic()
            try:
                return func(*args, **kwargs)
            except BusinessLogicException:
                raise
            except Exception:
                logger.exception(
                    f"Ledger operation '{self.operation_name}' failed",
                    extra={
                        "operation": self.operation_name,
                        "call_args": [str(a) for a in args],
                        "call_kwargs": {k: str(v) for k, v in kwargs.items()},
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    },
                )
                raise

        return wrapper

# Usage in a service:
#
# @staticmethod
# @logged_operation("transfer.complete")
# @transaction.atomic
# def complete_transfer(transfer_id, completer):
#     ...
