"""
Polling 모듈 - 테이블 변경 감지 및 스케줄링
"""
from .scheduler import TablePollingScheduler
from .subscription import Subscription
from .listeners import ListenerKind
from .differ import diff, DiffResult
from .exceptions import (
    TableListenerError,
    FetchError,
    ListenerCallbackError,
    NotListeningError,
    InvalidIntervalError
)

# Public API
__all__ = [
    "TablePollingScheduler",
    "Subscription",
    "ListenerKind",
    "diff",
    "DiffResult",

    # Errors
    "TableListenerError",
    "FetchError",
    "ListenerCallbackError",
    "NotListeningError",
    "InvalidIntervalError"
]
