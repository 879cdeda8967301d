"""
애플리케이션 설정 파일 - .env 파일 기반
"""
import os
from dotenv import load_dotenv
from typing import List
# .env 파일 로드
load_dotenv()


def _get_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """애플리케이션 설정 클래스"""
    # === PostgreSQL 설정 ===
    POSTGRES_HOST: str = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT: int = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB_NAME: str = os.getenv("POSTGRES_DB_NAME", "realtime_db")
    POSTGRES_POOL_MAX: int = int(os.getenv("POSTGRES_POOL_MAX", "10"))

    # === CloudSQL Proxy 설정 ===
    CLOUDSQL_CONNECTION_NAME: str = os.getenv("CLOUDSQL_CONNECTION_NAME", "")
    CLOUDSQL_USE_PROXY: bool = _get_bool("CLOUDSQL_USE_PROXY")
    POSTGRES_USE_IAM: bool = _get_bool("POSTGRES_USE_IAM")
    GOOGLE_APPLICATION_CREDENTIALS: str = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "")

    # === 폴링 설정 ===
    POLLING_INTERVAL_MS: int = int(os.getenv("POLLING_INTERVAL_MS", "1000"))
    POLLING_STRICT_STOP: bool = _get_bool("POLLING_STRICT_STOP")
    POLLING_FETCH_TIMEOUT_SECONDS: float = float(os.getenv("POLLING_FETCH_TIMEOUT_SECONDS", "30"))
    POLLING_JOIN_TIMEOUT_SECONDS: float = float(os.getenv("POLLING_JOIN_TIMEOUT_SECONDS", "5"))
    FETCH_WORKERS: int = int(os.getenv("FETCH_WORKERS", "4"))
    WATCH_TABLES: str = os.getenv("WATCH_TABLES", "")

    # === 애플리케이션 설정 ===
    APP_ENV: str = os.getenv("APP_ENV", "development")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    DEBUG: bool = _get_bool("DEBUG")

    # === 로깅 설정 ===
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# 필수 환경변수 검증
def validate_required_env_vars():
    """필수 환경변수들이 설정되어 있는지 검증"""
    required_vars = ["POSTGRES_USERNAME", "POSTGRES_PASSWORD"]

    missing_vars = []
    for var in required_vars:
        if not os.getenv(var):
            missing_vars.append(var)

    if missing_vars:
        raise ValueError(f"필수 환경변수가 설정되지 않았습니다: {', '.join(missing_vars)}")

# 전역 설정 인스턴스
config = Config()

# 편의 함수들
def get_postgres_config() -> dict:
    """PostgreSQL 연결 설정 반환"""
    # DB 연결 시점에만 검증 (폴링 엔진 단독 사용 시 불필요)
    validate_required_env_vars()
    user = os.getenv("POSTGRES_USERNAME")
    password = os.getenv("POSTGRES_PASSWORD")

    # CloudSQL Proxy 사용 시 특별한 설정
    if config.CLOUDSQL_USE_PROXY and config.CLOUDSQL_CONNECTION_NAME:
        return {
            "connection_name": config.CLOUDSQL_CONNECTION_NAME,
            "database": config.POSTGRES_DB_NAME,
            "user": user,
            "password": password,
            "use_proxy": True,
            "use_iam": config.POSTGRES_USE_IAM,
            "credentials_path": config.GOOGLE_APPLICATION_CREDENTIALS
        }
    else:
        return {
            "host": config.POSTGRES_HOST,
            "port": config.POSTGRES_PORT,
            "database": config.POSTGRES_DB_NAME,
            "user": user,
            "password": password
        }

def get_polling_config() -> dict:
    """폴링 스케줄러 설정 반환"""
    return {
        "interval_ms": config.POLLING_INTERVAL_MS,
        "strict_stop": config.POLLING_STRICT_STOP,
        "fetch_timeout": config.POLLING_FETCH_TIMEOUT_SECONDS,
        "join_timeout": config.POLLING_JOIN_TIMEOUT_SECONDS,
        "fetch_workers": config.FETCH_WORKERS
    }

def get_watch_tables() -> List[str]:
    """앱 시작 시 감지할 테이블 목록 (WATCH_TABLES=users,orders)"""
    return [table.strip() for table in config.WATCH_TABLES.split(",") if table.strip()]
