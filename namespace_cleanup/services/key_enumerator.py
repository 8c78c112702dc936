# ===================================================================
# 파일: key_enumerator.py
# 설명: SCAN 커서 기반 네임스페이스 키 열거
# ===================================================================

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from redis import Redis
from redis.exceptions import RedisError

from namespace_cleanup.exceptions import ScanFailed

logger = logging.getLogger(__name__)

# Redis glob 패턴에서 특수한 의미를 가지는 문자
GLOB_SPECIAL_CHARS = "\\*?[]"

# SCAN 시작 커서이자 종료 표시
INITIAL_CURSOR = 0

Key = Union[str, bytes]


def escape_glob(text: str) -> str:
    """MATCH 패턴에서 문자 그대로 비교되도록 glob 특수문자를 이스케이프합니다."""
    return "".join("\\" + ch if ch in GLOB_SPECIAL_CHARS else ch for ch in text)


def build_match_pattern(namespace: str, separator: str = ":") -> str:
    """네임스페이스 항목 키 전체와 일치하는 SCAN MATCH 패턴을 만듭니다."""
    return f"{escape_glob(namespace)}{escape_glob(separator)}*"


def key_to_text(key: Key) -> str:
    return key.decode("utf-8", errors="replace") if isinstance(key, bytes) else key


@dataclass
class KeyBatch:
    """SCAN 한 페이지의 결과"""
    keys: List[Key] = field(default_factory=list)
    cursor: int = INITIAL_CURSOR
    page: int = 0

    @property
    def is_last(self) -> bool:
        return self.cursor == INITIAL_CURSOR


class KeyEnumerator:
    """
    패턴과 일치하는 키를 SCAN 커서로 페이지 단위로 가져옵니다.

    전체 키 목록을 메모리에 올리지 않으며, 스토어를 블로킹하는 KEYS 명령은
    사용하지 않습니다. 재시도는 하지 않고 실패 시 ScanFailed를 발생시킵니다.
    """

    def __init__(self, redis_conn: Redis, page_size: int = 1000):
        if page_size < 1:
            raise ValueError(f"page_size는 1 이상이어야 합니다: {page_size}")
        self.redis_conn = redis_conn
        self.page_size = page_size

    def scan(self, pattern: str, prefix: Optional[str] = None) -> Iterator[KeyBatch]:
        """
        패턴과 일치하는 키 배치를 지연 생성합니다.

        Args:
            pattern: SCAN MATCH 패턴 (예: "ns:*")
            prefix: 지정하면 이 접두사로 시작하지 않는 키는 버립니다

        Yields:
            KeyBatch: 페이지별 키 목록과 다음 커서
        """
        cursor = INITIAL_CURSOR
        page = 0

        while True:
            try:
                cursor, keys = self.redis_conn.scan(cursor=cursor, match=pattern, count=self.page_size)
            except (RedisError, UnicodeDecodeError) as e:
                # decode_responses=True 연결에서 UTF-8이 아닌 키를 만나면 UnicodeDecodeError
                logger.error(f"[스캔] 페이지 {page + 1} 조회 실패: pattern={pattern}, cursor={cursor}, error={e}")
                raise ScanFailed(pattern, cursor, str(e)) from e

            cursor = int(cursor)
            page += 1

            if prefix is not None:
                kept = [key for key in keys if key_to_text(key).startswith(prefix)]
                if len(kept) != len(keys):
                    logger.warning(f"[스캔] 접두사 '{prefix}' 밖의 키 {len(keys) - len(kept)}개를 제외했습니다.")
                keys = kept

            logger.debug(f"[스캔] 페이지 {page}: {len(keys)}개, 다음 커서={cursor}")
            yield KeyBatch(keys=list(keys), cursor=cursor, page=page)

            if cursor == INITIAL_CURSOR:
                break

    def iter_keys(self, pattern: str, prefix: Optional[str] = None) -> Iterator[Key]:
        """배치 구분 없이 키를 하나씩 돌려줍니다."""
        for batch in self.scan(pattern, prefix=prefix):
            yield from batch.keys
