# ===================================================================
# 파일: batch_deleter.py
# 설명: 크기가 제한된 배치 단위 키 삭제
# ===================================================================

import logging
from typing import Iterable, Iterator, List, Sequence, TypeVar

from redis import Redis
from redis.exceptions import RedisError

from namespace_cleanup.exceptions import DeleteFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """items를 최대 size개씩 나눕니다."""
    if size < 1:
        raise ValueError(f"size는 1 이상이어야 합니다: {size}")
    chunk: List[T] = []
    for item in items:
        chunk.append(item)
        if len(chunk) >= size:
            yield chunk
            chunk = []
    if chunk:
        yield chunk


class BatchDeleter:
    """키 배치 하나를 한 번의 DEL(또는 UNLINK) 요청으로 삭제합니다."""

    def __init__(self, redis_conn: Redis, max_batch_size: int = 1000, unlink: bool = False):
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size는 1 이상이어야 합니다: {max_batch_size}")
        self.redis_conn = redis_conn
        self.max_batch_size = max_batch_size
        self.unlink = unlink

    def delete_batch(self, keys: Sequence) -> int:
        """
        키 배치를 삭제하고 실제로 삭제된 개수를 반환합니다.

        열거 이후 이미 사라진 키는 개수에서 빠질 뿐 오류가 아닙니다.

        Raises:
            ValueError: 빈 배치이거나 최대 크기를 넘는 경우
            DeleteFailed: 스토어가 배치 전체를 거부한 경우
        """
        if not keys:
            raise ValueError("삭제할 키 배치가 비어 있습니다")
        if len(keys) > self.max_batch_size:
            raise ValueError(f"배치 크기 {len(keys)}가 최대 {self.max_batch_size}를 초과합니다")

        try:
            if self.unlink:
                deleted = self.redis_conn.unlink(*keys)
            else:
                deleted = self.redis_conn.delete(*keys)
        except RedisError as e:
            logger.error(f"[삭제] 배치 삭제 중 오류 ({len(keys)}개): {e}")
            raise DeleteFailed(len(keys), str(e)) from e

        deleted = int(deleted or 0)
        if deleted < len(keys):
            logger.info(f"[삭제] 요청 {len(keys)}개 중 {deleted}개 삭제 (나머지는 이미 없음)")
        else:
            logger.debug(f"[삭제] {deleted}개 삭제 완료")
        return deleted
