"""
    테이블 폴링 스케줄러 - 주기적 조회, 스냅샷 비교, 리스너 호출
"""
import threading
import time
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type

from .differ import diff
from .exceptions import FetchError, InvalidIntervalError, NotListeningError, TableListenerError
from .listeners import Dispatcher, ListenerKind, ListenerRegistry, RowsCallback
from .snapshot_store import EMPTY_SNAPSHOT, Row, Snapshot, SnapshotStore
from .subscription import Subscription
from ..database.data_access import DataAccess
from ..mapping.row_mapper import typed_callback

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[str, TableListenerError], None]

_local = threading.local()


def _current_poll_task() -> Optional["PollTask"]:
    """현재 스레드가 폴링 스레드라면 그 작업을 반환"""
    return getattr(_local, "task", None)


class PollTask:
    """테이블 하나의 폴링 스레드와 취소 신호"""

    def __init__(self, table: str, interval_ms: int, tick: Callable[["PollTask"], None],
                 on_cancel: Callable[["PollTask"], None], predecessor: Optional["PollTask"] = None):
        self.table = table
        self.interval_ms = interval_ms
        self.last_check: Optional[datetime] = None
        self.tick_count = 0
        self.change_count = 0
        self.failure_count = 0
        self.last_error: Optional[str] = None
        # 디스패치 구간 (콜백 안에서 자기 자신을 멈출 수 있도록 RLock)
        self.lock = threading.RLock()
        # 취소 플래그와 스냅샷 기록만 보호, 콜백 실행 중에는 잡지 않는다
        self._state_lock = threading.Lock()
        self._tick = tick
        self._on_cancel = on_cancel
        # 재시작 전 작업, 이 작업의 스레드가 끝나야 첫 틱을 실행한다
        self._predecessor = predecessor
        self._ticking = False
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._polling_loop, name=f"table-poller-{table}", daemon=True
        )

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    @property
    def is_active(self) -> bool:
        return not self._stop_event.is_set()

    @property
    def state(self) -> str:
        if self._stop_event.is_set():
            return "stopped"
        return "ticking" if self._ticking else "scheduled"

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> bool:
        """
        취소 신호를 보내고 진행 중인 디스패치가 끝날 때까지 기다린다.
        다른 테이블의 폴링 스레드(콜백 안)에서 호출되면 기다리지 않는다.
        그 경우에도 남은 콜백과 스냅샷 기록은 건너뛴다.
        """
        with self._state_lock:
            if self._stop_event.is_set():
                return False
            self._stop_event.set()
        current = _current_poll_task()
        if current is None or current is self:
            with self.lock:
                pass
        self._on_cancel(self)
        logger.info(f"테이블 폴링 중지: {self.table}")
        return True

    def run_if_active(self, action: Callable[[], None]) -> bool:
        """취소되지 않았을 때만 action 실행 (취소 신호와 원자적으로)"""
        with self._state_lock:
            if self._stop_event.is_set():
                return False
            action()
            return True

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is threading.current_thread():
            return False
        if self._thread.ident is None:
            # 시작 전에 취소된 작업은 앞선 작업이 끝나야 종료된 것으로 본다
            if self._predecessor is not None:
                return self._predecessor.join(timeout)
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def get_status(self) -> dict:
        return {
            "table": self.table,
            "is_running": self.is_active,
            "state": self.state,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "interval_ms": self.interval_ms,
            "tick_count": self.tick_count,
            "change_count": self.change_count,
            "failure_count": self.failure_count,
            "last_error": self.last_error,
        }

    def _polling_loop(self) -> None:
        _local.task = self
        if self._predecessor is not None:
            # 같은 테이블의 틱이 겹치지 않도록 이전 스레드 종료 대기
            self._predecessor.join()
            self._predecessor = None
        interval = self.interval_ms / 1000.0
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            self._ticking = True
            try:
                self._tick(self)
            except Exception as e:
                logger.error(f"폴링 루프 오류 - table: {self.table}, error: {e}")
            finally:
                self._ticking = False
            next_tick += interval
            now = time.monotonic()
            # 주기보다 오래 걸린 틱은 따라잡지 않고 다음 틱을 미룬다
            if next_tick < now:
                next_tick = now
            self._stop_event.wait(next_tick - now)


class TablePollingScheduler:
    """
    테이블 변경 감지 엔진

    테이블마다 독립된 폴링 스레드를 하나씩 두고, 매 틱마다 전체 행을 조회해
    직전 스냅샷과 비교한다. 변경이 있으면 ALL -> NEW -> OLD 순서로 리스너를 호출한다.
    """

    def __init__(
        self,
        data_access: DataAccess,
        strict_stop: bool = False,
        fetch_timeout: Optional[float] = 30.0,
        join_timeout: Optional[float] = 5.0,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.data_access = data_access
        self.strict_stop = strict_stop
        self.fetch_timeout = fetch_timeout
        self.join_timeout = join_timeout
        self._error_handler = error_handler
        self._snapshots = SnapshotStore()
        self._listeners = ListenerRegistry()
        self._dispatcher = Dispatcher(self._report_error)
        self._tasks: Dict[str, PollTask] = {}
        self._tasks_lock = threading.Lock()
        logger.info("테이블 폴링 스케줄러 초기화 완료")

    @classmethod
    def from_config(cls, data_access: DataAccess, **overrides) -> "TablePollingScheduler":
        """환경변수 설정으로 스케줄러 생성"""
        from ..database.config import get_polling_config

        polling_config = get_polling_config()
        options = {
            "strict_stop": polling_config["strict_stop"],
            "fetch_timeout": polling_config["fetch_timeout"],
            "join_timeout": polling_config["join_timeout"],
        }
        options.update(overrides)
        return cls(data_access, **options)

    # === 리스너 등록 ===

    def on_all_values(self, table: str, callback: RowsCallback, record_type: Optional[Type] = None) -> None:
        """변경 시 테이블 전체 행을 받는 리스너 등록"""
        self._register(table, ListenerKind.ALL_VALUES, callback, record_type)

    def on_new_values(self, table: str, callback: RowsCallback, record_type: Optional[Type] = None) -> None:
        """
        변경 시 신규 행을 받는 리스너 등록
        이전 스냅샷에 같은 행이 하나라도 있으면 그 행은 개수와 무관하게 제외된다
        """
        self._register(table, ListenerKind.NEW_VALUES, callback, record_type)

    def on_old_values(self, table: str, callback: RowsCallback, record_type: Optional[Type] = None) -> None:
        """
        변경 시 이전 스냅샷을 받는 리스너 등록
        삭제된 행만이 아니라 직전 틱의 전체 행이 전달된다 (첫 변경이면 빈 리스트)
        """
        self._register(table, ListenerKind.OLD_VALUES, callback, record_type)

    def on_error(self, handler: Optional[ErrorHandler]) -> None:
        """틱 내부에서 복구된 오류(FetchError, ListenerCallbackError) 수신 핸들러 등록"""
        self._error_handler = handler

    def _register(self, table: str, kind: ListenerKind, callback: RowsCallback, record_type: Optional[Type]) -> None:
        if record_type is not None:
            callback = typed_callback(callback, record_type)
        self._listeners.register(table, kind, callback)

    # === 폴링 제어 ===

    def start_listening(self, table: str, interval_ms: int) -> Subscription:
        """테이블 폴링 시작 (즉시 1회 조회 후 interval_ms 마다 반복)"""
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
            raise InvalidIntervalError(table, interval_ms)

        # 작업 교체만 잠금 안에서 하고, 취소/대기는 잠금 밖에서 한다
        with self._tasks_lock:
            previous = self._tasks.get(table)
            task = PollTask(table, interval_ms, self._tick, self._release, predecessor=previous)
            self._tasks[table] = task

        if previous is not None:
            if previous.cancel():
                logger.warning(f"이미 감지 중인 테이블입니다. 기존 폴링을 중지하고 재시작: {table}")
            self._wait_for(previous)

        self._snapshots.set(table, EMPTY_SNAPSHOT)
        if not task.cancelled:
            task.start()

        logger.info(f"테이블 폴링 시작: {table} ({interval_ms}ms 주기)")
        return Subscription(task)

    def stop_listening(self, table: str) -> None:
        """테이블 폴링 중지 (strict_stop 이면 감지 중이 아닌 테이블에 NotListeningError)"""
        with self._tasks_lock:
            task = self._tasks.get(table)
        if task is None or not task.cancel():
            if self.strict_stop:
                raise NotListeningError(table)
            logger.debug(f"감지 중이 아닌 테이블 중지 요청 무시: {table}")
            return
        self._wait_for(task)

    def shutdown(self) -> None:
        """모든 테이블 폴링 중지"""
        with self._tasks_lock:
            tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            self._wait_for(task)
        logger.info(f"테이블 폴링 스케줄러 종료 완료 ({len(tasks)}개 테이블)")

    def _wait_for(self, task: PollTask) -> None:
        # 콜백 안(폴링 스레드)에서는 다른 스레드를 기다리지 않는다
        if _current_poll_task() is None:
            task.join(self.join_timeout)

    def is_listening(self, table: str) -> bool:
        with self._tasks_lock:
            task = self._tasks.get(table)
        return task is not None and task.is_active

    def listening_tables(self) -> List[str]:
        with self._tasks_lock:
            return [table for table, task in self._tasks.items() if task.is_active]

    def get_snapshot(self, table: str) -> List[Row]:
        return list(self._snapshots.get(table))

    def get_status(self, table: Optional[str] = None) -> dict:
        """폴링 상태 조회 (table 생략 시 전체)"""
        if table is None:
            return {name: self.get_status(name) for name in self.listening_tables()}
        with self._tasks_lock:
            task = self._tasks.get(table)
        has_listeners = not self._listeners.get(table).is_empty()
        if task is None:
            return {"table": table, "is_running": False, "state": "stopped", "row_count": 0,
                    "has_listeners": has_listeners}
        status = task.get_status()
        status["row_count"] = len(self._snapshots.get(table))
        status["has_listeners"] = has_listeners
        return status

    # === 틱 실행 ===

    def _tick(self, task: PollTask) -> None:
        table = task.table
        task.last_check = datetime.now()
        task.tick_count += 1

        try:
            current = self._fetch(table)
        except FetchError as e:
            if task.cancelled:
                return
            task.failure_count += 1
            task.last_error = str(e)
            logger.error(f"테이블 조회 실패 - table: {table}, error: {e}")
            self._report_error(table, e)
            return

        with task.lock:
            if task.cancelled:
                return
            previous: Snapshot = self._snapshots.get(table)
            result = diff(previous, current)
            if result.changed:
                task.change_count += 1
                logger.info(f"테이블 변경 감지: {table} - 전체 {len(current)}개, 신규 {len(result.new_values)}개")
                self._dispatcher.dispatch(
                    table,
                    self._listeners.get(table),
                    all_values=current,
                    new_values=result.new_values,
                    old_values=previous,
                    is_cancelled=lambda: task.cancelled,
                )
            else:
                logger.debug(f"테이블 변경 없음: {table}")
            # 변경이 없어도 최신 행 객체로 교체
            task.run_if_active(lambda: self._snapshots.set(table, current))
            task.last_error = None

    def _fetch(self, table: str) -> List[Row]:
        future = None
        try:
            future = self.data_access.fetch_all(table)
            rows = future.result(timeout=self.fetch_timeout)
            return [dict(row) for row in rows]
        except FetchError:
            raise
        except Exception as e:
            if future is not None:
                future.cancel()
            raise FetchError(table, e) from e

    def _release(self, task: PollTask) -> None:
        """취소된 작업 정리 - 작업 맵에서 제거하고 스냅샷 폐기"""
        with self._tasks_lock:
            if self._tasks.get(task.table) is task:
                del self._tasks[task.table]
                released = True
            else:
                released = False
        if released:
            self._snapshots.clear(task.table)

    def _report_error(self, table: str, error: TableListenerError) -> None:
        handler = self._error_handler
        if handler is None:
            return
        try:
            handler(table, error)
        except Exception as e:
            logger.error(f"에러 핸들러 실행 실패 - table: {table}, error: {e}")
