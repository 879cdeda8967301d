"""
    스냅샷 저장소 - 테이블별 마지막 조회 결과 보관
"""
import threading
from typing import Any, Dict, Iterable, Tuple

Row = Dict[str, Any]
Snapshot = Tuple[Row, ...]

EMPTY_SNAPSHOT: Snapshot = ()


class SnapshotStore:
    def __init__(self):
        self._snapshots: Dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def get(self, table: str) -> Snapshot:
        """저장된 스냅샷 반환 (없으면 빈 스냅샷)"""
        with self._lock:
            return self._snapshots.get(table, EMPTY_SNAPSHOT)

    def set(self, table: str, rows: Iterable[Row]) -> None:
        """스냅샷 전체 교체"""
        # 잠금 밖에서 튜플을 만들어 두고 참조만 바꿔 끼운다
        snapshot = tuple(rows)
        with self._lock:
            self._snapshots[table] = snapshot

    def clear(self, table: str) -> None:
        with self._lock:
            self._snapshots.pop(table, None)
