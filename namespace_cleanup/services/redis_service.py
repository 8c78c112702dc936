# ===================================================================
# 파일: redis_service.py
# 설명: Redis 연결 설정 및 네임스페이스 정리 설정 로딩
# ===================================================================

import os
import logging
from dataclasses import dataclass
from typing import Optional
from redis import ConnectionPool, Redis
from dotenv import load_dotenv
load_dotenv(override=True)  # 강제 재로드


# 로깅 설정
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass
class RedisSettings:
    """Redis 접속 정보"""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RedisSettings":
        """환경 변수에서 Redis 연결 정보를 가져옵니다."""
        return cls(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", 6379)),
            db=int(os.getenv("REDIS_DB", 0)),
            password=os.getenv("REDIS_PASSWORD", None),
            url=os.getenv("REDIS_URL", None),
        )


@dataclass
class EvictionSettings:
    """
    네임스페이스 키 규칙과 배치 크기 설정입니다.

    키 규칙:
        - 항목 키:   <namespace><separator><id>   (예: ns:1)
        - 카운터 키: counter_key_template        (예: ns-vec_num)
        - 인덱스명:  index_name_template         (예: ns)
    """
    separator: str = ":"
    counter_key_template: str = "{namespace}-vec_num"
    index_name_template: str = "{namespace}"
    scan_count: int = 1000
    batch_size: int = 1000
    use_unlink: bool = False
    drop_index_documents: bool = False

    def __post_init__(self):
        if not self.separator:
            raise ValueError("separator는 비어 있을 수 없습니다")
        if self.scan_count < 1:
            raise ValueError(f"scan_count는 1 이상이어야 합니다: {self.scan_count}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size는 1 이상이어야 합니다: {self.batch_size}")

    @classmethod
    def from_env(cls) -> "EvictionSettings":
        """환경 변수에서 정리 설정을 가져옵니다."""
        return cls(
            separator=os.getenv("EVICT_KEY_SEPARATOR", ":"),
            counter_key_template=os.getenv("EVICT_COUNTER_KEY_TEMPLATE", "{namespace}-vec_num"),
            index_name_template=os.getenv("EVICT_INDEX_NAME_TEMPLATE", "{namespace}"),
            scan_count=int(os.getenv("EVICT_SCAN_COUNT", 1000)),
            batch_size=int(os.getenv("EVICT_BATCH_SIZE", 1000)),
            use_unlink=_env_bool("EVICT_USE_UNLINK"),
            drop_index_documents=_env_bool("EVICT_DROP_INDEX_DOCUMENTS"),
        )


def create_connection_pool(settings: Optional[RedisSettings] = None,
                           decode_responses: bool = True) -> ConnectionPool:
    """
    연결 풀을 생성합니다.

    decode_responses=False 이면 원시(bytes) 응답 풀을 만듭니다.
    UTF-8이 아닌 키도 다뤄야 하는 키 스캔/삭제에는 원시 풀을 사용합니다.
    """
    settings = settings or RedisSettings.from_env()

    if settings.url:
        logger.info(f"Redis 연결 풀 생성: url 사용 (decode={decode_responses})")
        return ConnectionPool.from_url(settings.url, decode_responses=decode_responses)

    logger.info(f"Redis 연결 풀 생성: {settings.host}:{settings.port}/{settings.db} (decode={decode_responses})")
    return ConnectionPool(
        host=settings.host,
        port=settings.port,
        db=settings.db,
        password=settings.password,
        decode_responses=decode_responses
    )


def create_redis_connection(settings: Optional[RedisSettings] = None,
                            pool: Optional[ConnectionPool] = None,
                            decode_responses: bool = True) -> Redis:
    """연결 풀에서 Redis 연결을 가져옵니다. 풀이 없으면 새로 만듭니다."""
    if pool is None:
        pool = create_connection_pool(settings, decode_responses=decode_responses)
    return Redis(connection_pool=pool)


def create_raw_redis_connection(settings: Optional[RedisSettings] = None) -> Redis:
    """원시(bytes) Redis 연결을 가져옵니다. (네임스페이스 스캔/삭제용)"""
    return create_redis_connection(settings, decode_responses=False)
