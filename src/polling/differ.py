"""
    스냅샷 비교 - 변경 여부와 신규 행 계산

    new_values 는 집합식 제외로 계산한다. 이전 스냅샷에 같은 행이 하나라도
    있으면 현재 스냅샷의 같은 행은 개수와 상관없이 모두 제외된다.
    예) 이전 [R], 현재 [R, R] -> new_values 는 [] (R 두 개 모두 제외)

    old values 로 전달되는 값은 "삭제된 행" 이 아니라 이전 스냅샷 전체다.
"""
from typing import Hashable, List, NamedTuple, Optional, Sequence, Set

from .snapshot_store import Row


class DiffResult(NamedTuple):
    changed: bool
    new_values: List[Row]


def _row_key(row: Row) -> Optional[Hashable]:
    """컬럼 순서와 무관한 행 키 (해시 불가 값이 있으면 None)"""
    try:
        key = frozenset(row.items())
        hash(key)
        return key
    except TypeError:
        return None


def rows_equal(left: Sequence[Row], right: Sequence[Row]) -> bool:
    """순서 있는 행 시퀀스 비교 (행 내부 컬럼 순서는 무시)"""
    if len(left) != len(right):
        return False
    # dict 비교는 컬럼 순서를 보지 않는다
    return all(dict(a) == dict(b) for a, b in zip(left, right))


def diff(previous: Sequence[Row], current: Sequence[Row]) -> DiffResult:
    changed = not rows_equal(previous, current)
    if not changed:
        return DiffResult(False, [])

    previous_keys: Set[Hashable] = set()
    unhashable: List[Row] = []
    for row in previous:
        key = _row_key(row)
        if key is None:
            unhashable.append(row)
        else:
            previous_keys.add(key)

    new_values = []
    for row in current:
        key = _row_key(row)
        if key is not None and key in previous_keys:
            continue
        if key is None or unhashable:
            # 해시 불가 행이 섞여 있으면 선형 비교
            if any(dict(row) == dict(old) for old in previous):
                continue
        new_values.append(row)
    return DiffResult(True, new_values)
