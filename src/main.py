"""
  FastAPI 메인 애플리케이션 - 테이블 변경 감지 서비스
  - 백그라운드: 테이블별 폴링 스레드가 주기적으로 전체 행을 조회해 변경 감지
  - API: 감지 중인 테이블 상태/스냅샷 조회, 폴링 시작/중지
"""
from fastapi import FastAPI, HTTPException, Query
from contextlib import asynccontextmanager
import logging
from datetime import datetime
from typing import List, Optional

from .database.config import config, get_polling_config, get_watch_tables
from .database.postgres_client import get_postgresql_client
from .polling.exceptions import InvalidIntervalError, NotListeningError, TableListenerError
from .polling.scheduler import TablePollingScheduler

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

postgres_client = None
polling_scheduler: Optional[TablePollingScheduler] = None


def _log_table_errors(table: str, error: TableListenerError) -> None:
    logger.warning(f"테이블 {table} 폴링 오류 (다음 틱에서 재시도): {error}")


def _register_change_logging(scheduler: TablePollingScheduler, table: str) -> None:
    """기본 리스너 - 변경분을 로그로 남긴다"""
    def log_new_values(rows: List[dict]) -> None:
        logger.info(f"테이블 {table} 신규 행 {len(rows)}개")

    def log_all_values(rows: List[dict]) -> None:
        logger.info(f"테이블 {table} 전체 행 {len(rows)}개")

    scheduler.on_all_values(table, log_all_values)
    scheduler.on_new_values(table, log_new_values)


def _start_table(table: str, interval_ms: int) -> dict:
    subscription = polling_scheduler.start_listening(table, interval_ms)
    return {"table": subscription.table, "interval_ms": subscription.interval_ms, "is_running": subscription.is_active}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    애플리케이션 생명주기 관리
    """
    global postgres_client, polling_scheduler

    try:
        logger.info("애플리케이션 시작 - 리소스 초기화")
        postgres_client = get_postgresql_client()
        logger.info("PostgreSQL 클라이언트 초기화 완료")

        polling_scheduler = TablePollingScheduler.from_config(postgres_client, error_handler=_log_table_errors)
        logger.info("테이블 폴링 스케줄러 초기화 완료")

        interval_ms = get_polling_config()["interval_ms"]
        for table in get_watch_tables():
            _register_change_logging(polling_scheduler, table)
            _start_table(table, interval_ms)

        logger.info("애플리케이션 시작 완료")
        logger.info(f"- 감지 테이블: {polling_scheduler.listening_tables()} ({interval_ms}ms 주기)")
    except Exception as e:
        logger.error(f"❌ 서버 초기화 실패: {e}")
        raise
    yield # yield 이전: 앱 시작 시 실행 (리소스 초기화) , yield 이후: 앱 종료 시 실행 (리소스 정리)

    try:
        if polling_scheduler:
            polling_scheduler.shutdown()
            logger.info("폴링 스케줄러 종료 완료")
        if postgres_client:
            postgres_client.disconnect()
            logger.info("PostgreSQL 연결 종료 완료")

        logger.info("✅ FastAPI 서버 종료")
    except Exception as e:
        logger.error(f"❌ 서버 종료 중 오류: {e}")

app = FastAPI(
    title="Realtime Table Listener API",
    description="""
    **폴링 기반 테이블 변경 감지 서비스**

    ## 주요 특징
    - 🔄 테이블별 독립 폴링: 주기마다 전체 행을 조회해 직전 스냅샷과 비교
    - 📣 변경 시 전체 행 / 신규 행 / 이전 스냅샷 리스너 호출
    - 🛡️ 조회 실패는 로그로 남기고 다음 틱에서 재시도
    """,
    version="1.0.0",
    lifespan=lifespan
)


def _require_scheduler() -> TablePollingScheduler:
    if not polling_scheduler:
        raise HTTPException(status_code=503, detail="폴링 스케줄러가 초기화되지 않았습니다.")
    return polling_scheduler


@app.get("/", tags=["시스템"])
async def root():
    """루트 엔드포인트"""
    return {
        "service": "Realtime Table Listener API",
        "status": "running",
        "listening_tables": polling_scheduler.listening_tables() if polling_scheduler else [],
        "timestamp": datetime.now().isoformat()
    }

@app.get("/health", tags=["monitoring"])
def health_check():
    """
    헬스체크 엔드포인트
    - PostgreSQL 연결 상태
    - 폴링 스케줄러 상태
    """
    try:
        postgres_status = postgres_client.health_check() if postgres_client else {"is_connected": False}
        polling_status = polling_scheduler.get_status() if polling_scheduler else {}

        overall_healthy = postgres_status.get("is_connected", False) and polling_scheduler is not None

        return {
            "status": "healthy" if overall_healthy else "unhealthy",
            "timestamp": datetime.now().isoformat(),
            "services": {
                "postgres": postgres_status,
                "polling_scheduler": polling_status
            },
            "version": "1.0.0"
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Health check failed: {str(e)}")

@app.get("/tables", tags=["폴링"])
async def list_tables():
    """감지 중인 테이블 상태 목록"""
    scheduler = _require_scheduler()
    return {
        "tables": scheduler.get_status(),
        "timestamp": datetime.now().isoformat()
    }

@app.get("/tables/{table}/status", tags=["폴링"])
async def get_table_status(table: str):
    scheduler = _require_scheduler()
    return scheduler.get_status(table)

@app.get("/tables/{table}/snapshot", tags=["폴링"])
async def get_table_snapshot(table: str):
    """마지막으로 조회된 테이블 스냅샷"""
    scheduler = _require_scheduler()
    if not scheduler.is_listening(table):
        raise HTTPException(status_code=404, detail=f"감지 중인 테이블이 아닙니다: {table}")
    rows = scheduler.get_snapshot(table)
    return {
        "table": table,
        "rows": rows,
        "count": len(rows),
        "timestamp": datetime.now().isoformat()
    }

@app.post("/tables/{table}/listen", tags=["폴링"])
def start_listening(
    table: str,
    interval_ms: Optional[int] = Query(None, description="폴링 주기 (ms, 생략 시 POLLING_INTERVAL_MS)"),
):
    """
    테이블 폴링 시작 (이미 감지 중이면 재시작)
    - 기존 폴링 스레드 종료를 기다리므로 스레드풀에서 실행되도록 def 로 선언
    - 등록된 리스너는 그대로 유지
    """
    _require_scheduler()
    if interval_ms is None:
        interval_ms = get_polling_config()["interval_ms"]
    try:
        result = _start_table(table, interval_ms)
        logger.info(f"API 요청으로 테이블 폴링 시작: {table}")
        return result
    except InvalidIntervalError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"테이블 폴링 시작 실패 - table: {table}, error: {e}")
        raise HTTPException(status_code=500, detail=f"폴링 시작 실패: {str(e)}")

@app.delete("/tables/{table}/listen", tags=["폴링"])
def stop_listening(table: str):
    """테이블 폴링 중지"""
    scheduler = _require_scheduler()
    try:
        scheduler.stop_listening(table)
        return {"table": table, "is_running": False}
    except NotListeningError as e:
        raise HTTPException(status_code=404, detail=str(e))

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.APP_PORT)
