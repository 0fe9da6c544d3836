"""
Embedded database boundary: connection, transaction scope, cursor helpers,
driver error classification.
"""

from .connect import connect, cursor_to_dicts, transaction
from .errors import classify_db_error, wrap_db_error

__all__ = [
    "connect",
    "cursor_to_dicts",
    "transaction",
    "classify_db_error",
    "wrap_db_error",
]
