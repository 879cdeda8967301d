"""
    구독 핸들 - 테이블 폴링 작업 취소용
"""
from typing import Optional


class Subscription:
    """start_listening() 이 반환하는 취소 가능한 핸들"""

    def __init__(self, task):
        self._task = task

    @property
    def table(self) -> str:
        return self._task.table

    @property
    def interval_ms(self) -> int:
        return self._task.interval_ms

    @property
    def is_active(self) -> bool:
        return self._task.is_active

    def cancel(self) -> bool:
        """
        폴링 중지. 이미 중지된 경우 False 반환
        반환 이후에는 해당 테이블의 리스너가 더 이상 호출되지 않는다
        """
        return self._task.cancel()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """폴링 스레드 종료 대기"""
        return self._task.join(timeout)

    def __repr__(self) -> str:
        state = "active" if self.is_active else "cancelled"
        return f"<Subscription table={self.table!r} interval_ms={self.interval_ms} {state}>"
