"""
    리스너 레지스트리 및 디스패처
"""
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from .exceptions import ListenerCallbackError, TableListenerError
from .snapshot_store import Row

logger = logging.getLogger(__name__)

RowsCallback = Callable[[List[Row]], None]
ErrorReporter = Callable[[str, TableListenerError], None]


class ListenerKind(str, Enum):
    ALL_VALUES = "all_values"
    NEW_VALUES = "new_values"
    OLD_VALUES = "old_values"


# 디스패치 순서 고정: ALL -> NEW -> OLD
DISPATCH_ORDER = (ListenerKind.ALL_VALUES, ListenerKind.NEW_VALUES, ListenerKind.OLD_VALUES)


@dataclass(frozen=True)
class ListenerSet:
    all_values: Optional[RowsCallback] = None
    new_values: Optional[RowsCallback] = None
    old_values: Optional[RowsCallback] = None

    def get(self, kind: ListenerKind) -> Optional[RowsCallback]:
        return getattr(self, kind.value)

    def with_callback(self, kind: ListenerKind, callback: Optional[RowsCallback]) -> "ListenerSet":
        return replace(self, **{kind.value: callback})

    def is_empty(self) -> bool:
        return all(self.get(kind) is None for kind in DISPATCH_ORDER)


EMPTY_LISTENERS = ListenerSet()


class ListenerRegistry:
    """테이블별 리스너 보관 (종류별 최대 1개, 재등록 시 교체)"""

    def __init__(self):
        self._listeners: Dict[str, ListenerSet] = {}
        self._lock = threading.Lock()

    def register(self, table: str, kind: ListenerKind, callback: Optional[RowsCallback]) -> None:
        kind = ListenerKind(kind)
        with self._lock:
            current = self._listeners.get(table, EMPTY_LISTENERS)
            self._listeners[table] = current.with_callback(kind, callback)
        logger.debug(f"리스너 등록: table={table}, kind={kind.value}")

    def get(self, table: str) -> ListenerSet:
        # ListenerSet 은 불변이므로 잠금 밖에서 그대로 읽어도 된다
        with self._lock:
            return self._listeners.get(table, EMPTY_LISTENERS)


class Dispatcher:
    def __init__(self, error_reporter: ErrorReporter):
        self._report_error = error_reporter

    def dispatch(
        self,
        table: str,
        listeners: ListenerSet,
        all_values: Sequence[Row],
        new_values: Sequence[Row],
        old_values: Sequence[Row],
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> int:
        """등록된 리스너 호출, 호출된 리스너 수 반환

        is_cancelled 가 True 를 반환하면 남은 리스너는 호출하지 않는다
        """
        payloads = {
            ListenerKind.ALL_VALUES: all_values,
            ListenerKind.NEW_VALUES: new_values,
            ListenerKind.OLD_VALUES: old_values,
        }
        fired = 0
        for kind in DISPATCH_ORDER:
            callback = listeners.get(kind)
            if callback is None:
                continue
            if is_cancelled is not None and is_cancelled():
                break
            try:
                # 리스너마다 새 리스트를 넘겨 스냅샷이 변형되지 않게 한다
                callback(list(payloads[kind]))
                fired += 1
            except Exception as e:
                logger.error(f"리스너 실행 실패 - table: {table}, kind: {kind.value}, error: {e}")
                self._report_error(table, ListenerCallbackError(table, kind.value, e))
        return fired
