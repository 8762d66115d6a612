"""Error taxonomy, classification and the UI error feed."""

from .classifier import ErrorClassifier, kind_for_status, log_error_record
from .feed import ErrorFeed, FeedEntry
from .models import ErrorContext, ErrorKind, ErrorRecord, Severity

__all__ = [
    "ErrorClassifier",
    "ErrorContext",
    "ErrorFeed",
    "ErrorKind",
    "ErrorRecord",
    "FeedEntry",
    "Severity",
    "kind_for_status",
    "log_error_record",
]
