# ===================================================================
# 파일: auxiliary_cleaner.py
# 설명: 네임스페이스 카운터 키와 보조 인덱스 정리
# ===================================================================

import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from namespace_cleanup.exceptions import IndexCleanupFailed

logger = logging.getLogger(__name__)

# FT.DROPINDEX 실패 중 "인덱스 없음"으로 보는 응답
_INDEX_ABSENT_MARKERS = (
    "unknown index name",
    "no such index",
    "unknown command",  # RediSearch 모듈 미탑재
)


class IndexStatus(str, Enum):
    DROPPED = "dropped"
    ABSENT = "absent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class AuxiliaryCleanupResult:
    """보조 상태 정리 결과. 모든 필드는 진단용입니다."""
    counter_removed: bool = False
    index_removed: bool = False
    index_status: IndexStatus = IndexStatus.SKIPPED
    index_error: Optional[str] = None
    counter_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["index_status"] = self.index_status.value
        return data


class AuxiliaryCleaner:
    """
    네임스페이스에 딸린 카운터 키와 RediSearch 인덱스를 정리합니다.

    카운터가 없거나 인덱스가 없는 것은 정상 상황으로 취급하며,
    어떤 실패도 예외로 올리지 않고 결과에 기록합니다.
    """

    def __init__(self, redis_conn: Redis,
                 counter_key_template: str = "{namespace}-vec_num",
                 index_name_template: str = "{namespace}",
                 drop_index_documents: bool = False):
        self.redis_conn = redis_conn
        self.counter_key_template = counter_key_template
        self.index_name_template = index_name_template
        self.drop_index_documents = drop_index_documents

    def counter_key(self, namespace: str) -> str:
        return self.counter_key_template.format(namespace=namespace)

    def index_name(self, namespace: str) -> str:
        return self.index_name_template.format(namespace=namespace)

    def cleanup(self, namespace: str) -> AuxiliaryCleanupResult:
        """카운터 삭제(A)와 인덱스 삭제(B)를 각각 독립적으로 시도합니다."""
        result = AuxiliaryCleanupResult()

        # A. 카운터 키
        counter_key = self.counter_key(namespace)
        try:
            result.counter_removed = self.redis_conn.delete(counter_key) > 0
            logger.info(f"[정리] 카운터 '{counter_key}' 삭제: removed={result.counter_removed}")
        except RedisError as e:
            result.counter_error = str(e)
            logger.error(f"[정리] 카운터 '{counter_key}' 삭제 중 오류: {e}")

        # B. 보조 인덱스
        index_name = self.index_name(namespace)
        try:
            self.drop_index(index_name)
            result.index_removed = True
            result.index_status = IndexStatus.DROPPED
        except IndexCleanupFailed as e:
            result.index_status = IndexStatus.ABSENT if e.absent else IndexStatus.FAILED
            result.index_error = str(e)

        return result

    def drop_index(self, index_name: str) -> None:
        """
        FT.DROPINDEX를 실행합니다.

        Raises:
            IndexCleanupFailed: 인덱스가 없거나(absent=True) 삭제에 실패한 경우
        """
        cmd = ["FT.DROPINDEX", index_name]
        if self.drop_index_documents:
            cmd.append("DD")

        try:
            self.redis_conn.execute_command(*cmd)
            logger.info(f"[정리] 인덱스 '{index_name}' 삭제 완료 (DD={self.drop_index_documents})")
        except ResponseError as e:
            absent = any(marker in str(e).lower() for marker in _INDEX_ABSENT_MARKERS)
            if absent:
                logger.info(f"[정리] 인덱스 '{index_name}'가 존재하지 않습니다.")
            else:
                logger.warning(f"[정리] 인덱스 '{index_name}' 삭제 중 Redis 오류: {e}")
            raise IndexCleanupFailed(index_name, str(e), absent=absent) from e
        except RedisError as e:
            logger.warning(f"[정리] 인덱스 '{index_name}' 삭제 중 오류: {e}")
            raise IndexCleanupFailed(index_name, str(e)) from e
