"""
Mapping 모듈 - 행과 타입 레코드 간 변환
"""
from .row_mapper import row_to_record, record_to_row, rows_to_records, typed_callback

# Public API
__all__ = [
    "row_to_record",
    "record_to_row",
    "rows_to_records",
    "typed_callback"
]
