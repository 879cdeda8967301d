"""
    테이블 변경 감지 예외
"""
from typing import Optional


class TableListenerError(Exception):
    """테이블 변경 감지 중 발생한 오류의 기본 클래스"""

    def __init__(self, table: str, message: Optional[str] = None):
        self.table = table
        super().__init__(message or f"Error encountered while listening for changes on table '{table}'")


class FetchError(TableListenerError):
    """Data Access 조회 실패 (연결 또는 쿼리 오류, 타임아웃)"""

    def __init__(self, table: str, cause: Optional[BaseException] = None):
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(table, f"Failed to fetch rows from table '{table}'{detail}")


class ListenerCallbackError(TableListenerError):
    """등록된 리스너 콜백이 예외를 던진 경우"""

    def __init__(self, table: str, kind: str, cause: BaseException):
        self.kind = kind
        self.cause = cause
        super().__init__(table, f"{kind} listener for table '{table}' raised: {cause}")


class NotListeningError(TableListenerError):
    def __init__(self, table: str):
        super().__init__(table, f"No listening thread found for table '{table}'")


class InvalidIntervalError(TableListenerError, ValueError):
    def __init__(self, table: str, interval_ms):
        self.interval_ms = interval_ms
        super().__init__(table, f"Polling interval must be a positive integer (ms), got {interval_ms!r} for table '{table}'")
