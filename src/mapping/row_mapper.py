"""
    Row Mapper - 조회 행(dict) <-> 타입 레코드 변환
    pydantic 모델과 dataclass 를 지원한다
"""
import dataclasses
from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Type, TypeVar

from pydantic import BaseModel, TypeAdapter

T = TypeVar("T")
Row = Dict[str, Any]


def row_to_record(row: Row, record_type: Type[T]) -> T:
    """행 -> 레코드 (정의되지 않은 컬럼은 무시)"""
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        return record_type.model_validate(row)
    if dataclasses.is_dataclass(record_type):
        field_names = {field.name for field in dataclasses.fields(record_type)}
        # dataclass 는 모르는 키를 받으면 TypeError 이므로 미리 걸러낸다
        known = {key: value for key, value in row.items() if key in field_names}
        return TypeAdapter(record_type).validate_python(known)
    raise TypeError(f"지원하지 않는 레코드 타입입니다: {record_type!r}")


def record_to_row(record: Any) -> Row:
    """레코드 -> 행"""
    if isinstance(record, BaseModel):
        return record.model_dump()
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return dataclasses.asdict(record)
    if isinstance(record, dict):
        return dict(record)
    raise TypeError(f"행으로 변환할 수 없는 값입니다: {type(record).__name__}")


def rows_to_records(rows: Iterable[Row], record_type: Type[T]) -> List[T]:
    return [row_to_record(row, record_type) for row in rows]


def typed_callback(callback: Callable[[List[T]], None], record_type: Type[T]) -> Callable[[List[Row]], None]:
    """행 목록 리스너를 레코드 목록 리스너로 감싼다"""

    @wraps(callback)
    def wrapper(rows: List[Row]) -> None:
        callback(rows_to_records(rows, record_type))

    return wrapper
