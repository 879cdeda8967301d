"""
    Data Access 포트 - 폴링 스케줄러가 사용하는 테이블 조회 인터페이스
"""
from concurrent.futures import Future
from typing import Any, Dict, List, Protocol


class DataAccess(Protocol):
    def fetch_all(self, table: str) -> "Future[List[Dict[str, Any]]]":
        """테이블 전체 행을 비동기로 조회 (실패 시 FetchError 로 완료)"""
        ...
