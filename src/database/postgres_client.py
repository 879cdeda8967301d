import psycopg2
import psycopg2.extras # RealDictCursor : 결과가 딕셔너리 {'id': 1, 'name': 'a'}로 나옴 -> 컬럼명으로 접근 가능
from psycopg2 import sql
from psycopg2.pool import ThreadedConnectionPool  # 폴링 스레드 여러 개가 공유하는 연결 풀
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, List, Optional
from datetime import datetime
from .config import get_postgres_config, get_polling_config, config as app_config
from ..polling.exceptions import FetchError

from google.cloud.sql.connector import Connector
from sqlalchemy import create_engine, text
from sqlalchemy.pool import NullPool
import os

logger = logging.getLogger(__name__)

class PostgreSQLClient:
    """PostgreSQL Data Access / Connection Provider (CloudSQL Proxy 지원)"""

    def __init__(self, postgres_config: dict, fetch_workers: int = 4, pool_max: int = 10):
        self.use_proxy = postgres_config.get("use_proxy", False)
        self.connection_pool = None
        self.engine = None
        self.connector = None
        # fetch_all() 이 반환하는 Future 를 실행하는 스레드 풀
        self.executor = ThreadPoolExecutor(max_workers=fetch_workers, thread_name_prefix="pg-fetch")

        if self.use_proxy:
            self._init_cloudsql_proxy(postgres_config)
        else:
            self.connection_params = {
                "host": postgres_config["host"],
                "port": postgres_config["port"],
                "user": postgres_config["user"],
                "password": postgres_config["password"],
                "database": postgres_config["database"]
            }
            self._initialize_connection_pool(pool_max)

    def _init_cloudsql_proxy(self, config: dict):
        """Cloud SQL Proxy 연결 초기화"""
        try:
            # 서비스 계정 키 파일 설정
            credentials_path = config.get("credentials_path")
            if credentials_path and os.path.exists(credentials_path):
                os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = credentials_path
            self.connector = Connector()

            def getconn():
                conn = self.connector.connect(
                    config["connection_name"],
                    "pg8000",
                    user=config["user"],
                    password=config["password"],
                    db=config["database"],
                    enable_iam_auth=config.get("use_iam", False)
                )
                return conn

            self.engine = create_engine(
                "postgresql+pg8000://",
                creator=getconn,
                poolclass=NullPool, #Proxy가 연결 관리
            )
            logger.info("Cloud SQL Proxy 연결 초기화 완료")
        except Exception as e:
            logger.error(f"Cloud SQL Proxy 초기화 실패 : {e}")
            raise

    def _initialize_connection_pool(self, pool_max: int) -> None:
        """PostgreSQL 연결 풀 초기화"""
        try:
            self.connection_pool = ThreadedConnectionPool(
                minconn=1,
                maxconn=pool_max,
                **self.connection_params
            )
            logger.info("PostgreSQL 연결 풀 초기화 완료")
        except Exception as e:
            # 연결 실패해도 앱은 뜨고, 조회 시점에 FetchError 로 보고된다
            logger.error(f"PostgreSQL 연결 풀 초기화 실패: {e}")
            self.connection_pool = None

    def _get_connection(self):
        """연결 가져오기 (Proxy 또는 기존 방식)"""
        if self.use_proxy:
            return self.engine.connect()
        if not self.connection_pool:
            raise ConnectionError("PostgreSQL 연결 풀이 초기화되지 않음")
        return self.connection_pool.getconn()

    def _return_connection(self, conn):
        """연결 반환 (Proxy 또는 기존 방식)"""
        if self.use_proxy:
            conn.close()
        elif self.connection_pool and conn:
            self.connection_pool.putconn(conn)

    def health_check(self) -> dict:
        """데이터베이스 연결 상태 확인 (Proxy 지원)"""
        conn = None
        try:
            conn = self._get_connection()

            if self.use_proxy:
                #SQLAlchemy 연결 사용
                row = conn.execute(text("SELECT 1")).fetchone()
                connection_info = {"type": "cloudsql_proxy", "connection_name": "masked"}
            else:
                with conn.cursor() as cursor:
                    cursor.execute("SELECT 1;")
                    row = cursor.fetchone()
                connection_info = {k: v for k, v in self.connection_params.items() if k != "password"}

            return {
                "is_connected": row is not None and row[0] == 1,
                "connection_info": connection_info,
                "checked_at": datetime.now().isoformat()
            }
        except Exception as e:
            logger.error(f"PostgreSQL 헬스체크 실패: {e}")
            return {
                "is_connected": False,
                "error": str(e),
                "checked_at": datetime.now().isoformat()
            }
        finally:
            if conn:
                self._return_connection(conn)

    def disconnect(self) -> None:
        """PostgreSQL 연결 종료"""
        try:
            self.executor.shutdown(wait=False)
            if self.use_proxy:
                # CloudSQL Proxy 연결 종료
                if self.connector:
                    self.connector.close()
                logger.info("CloudSQL Proxy 연결 종료 완료")
            else:
                # 기존 연결 풀 종료
                if self.connection_pool:
                    self.connection_pool.closeall()
                    self.connection_pool = None
                logger.info("PostgreSQL 연결 종료 완료")
        except Exception as e:
            logger.error(f"PostgreSQL 연결 종료 실패: {e}")

    def fetch_all(self, table: str) -> "Future[List[Dict[str, Any]]]":
        """테이블 전체 행 비동기 조회 (호출 관계: 폴링 스케줄러 틱마다 호출)"""
        return self.executor.submit(self._select_all, table)

    def _select_all(self, table: str) -> List[Dict[str, Any]]:
        try:
            return self.select_all(table)
        except Exception as e:
            raise FetchError(table, e) from e

    def select_all(self, table: str) -> List[Dict[str, Any]]:
        """SELECT * 실행 후 행 목록 반환 ("schema.table" 형식 지원)"""
        conn = None
        try:
            conn = self._get_connection()

            if self.use_proxy:
                # SQLAlchemy 연결 사용 (CloudSQL Proxy)
                preparer = conn.dialect.identifier_preparer
                quoted = ".".join(preparer.quote(part) for part in table.split("."))
                result = conn.execute(text(f"SELECT * FROM {quoted}"))
                return [dict(row._mapping) for row in result]

            query = sql.SQL("SELECT * FROM {}").format(sql.Identifier(*table.split(".")))
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                cursor.execute(query)
                rows = [dict(row) for row in cursor.fetchall()]
            # 읽기 전용이지만 트랜잭션을 열어두지 않는다
            conn.rollback()
            return rows
        except Exception as e:
            if conn and not self.use_proxy:
                conn.rollback()
            logger.error(f"테이블 조회 쿼리 실패 - table: {table}, error: {e}")
            raise
        finally:
            if conn:
                self._return_connection(conn)

_postgres_client_instance: Optional[PostgreSQLClient] = None
def get_postgresql_client() -> PostgreSQLClient:
    """PostgreSQL 클라이언트 싱글톤 반환"""
    # config에서 설정값 가져와서 PostgreSQLClient 인스턴스 반환
    global _postgres_client_instance
    if _postgres_client_instance is None:
        polling_config = get_polling_config()
        _postgres_client_instance = PostgreSQLClient(
            get_postgres_config(),
            fetch_workers=polling_config["fetch_workers"],
            pool_max=app_config.POSTGRES_POOL_MAX
        )
    return _postgres_client_instance
