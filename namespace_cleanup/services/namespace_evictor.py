# ===================================================================
# 파일: namespace_evictor.py
# 설명: 네임스페이스 전체 삭제 오케스트레이터
#       (키 열거 → 배치 삭제 → 카운터/인덱스 정리 → 요약)
# ===================================================================

import logging
import threading
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from redis import Redis
from redis.exceptions import RedisError

from namespace_cleanup.exceptions import NoOp, ScanFailed, DeleteFailed
from namespace_cleanup.services.redis_service import EvictionSettings
from namespace_cleanup.services.key_enumerator import KeyEnumerator, build_match_pattern, key_to_text
from namespace_cleanup.services.batch_deleter import BatchDeleter, chunked
from namespace_cleanup.services.auxiliary_cleaner import AuxiliaryCleaner, IndexStatus

logger = logging.getLogger(__name__)

# 네임스페이스가 이 문자들로만 이루어지면 전체 키 공간과 일치할 수 있음
WILDCARD_CHARS = frozenset("*?")


class EvictionStatus(str, Enum):
    COMPLETE = "complete"
    PARTIAL = "partial"
    NOOP = "noop"


class EvictionPhase(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DELETING = "deleting"
    AUX_CLEANUP = "aux_cleanup"
    DONE = "done"
    REJECTED = "rejected"


@dataclass
class EvictionSummary:
    """evict_namespace 한 번의 실행 결과"""
    namespace: str
    pattern: str = ""
    deleted: int = 0
    batches: int = 0
    counter_removed: bool = False
    counter_error: Optional[str] = None
    index_removed: bool = False
    index_status: IndexStatus = IndexStatus.SKIPPED
    index_error: Optional[str] = None
    status: EvictionStatus = EvictionStatus.COMPLETE
    phase: EvictionPhase = EvictionPhase.IDLE
    cancelled: bool = False
    error: Optional[str] = None
    reason: Optional[str] = None
    elapsed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["phase"] = self.phase.value
        data["index_status"] = self.index_status.value
        data["elapsed"] = round(self.elapsed, 3)
        return data


@dataclass
class NamespacePreview:
    """삭제 전 확인용 정보"""
    namespace: str
    pattern: str = ""
    total: int = 0
    sample_keys: List[str] = field(default_factory=list)
    counter_key: Optional[str] = None
    counter_exists: bool = False
    counter_error: Optional[str] = None
    rejected: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


ProgressCallback = Callable[[int, EvictionSummary], None]


def validate_namespace(namespace: str) -> None:
    """
    전체 키 공간 삭제로 이어질 수 있는 네임스페이스를 거부합니다.

    Raises:
        NoOp: 비어 있거나 와일드카드만으로 이루어진 경우
    """
    if namespace is None or not namespace.strip():
        raise NoOp(namespace or "", "빈 네임스페이스")
    if set(namespace) <= WILDCARD_CHARS:
        raise NoOp(namespace, "전체 키 공간과 일치하는 와일드카드")


class NamespaceEvictor:
    """
    하나의 네임스페이스에 속한 항목 키, 카운터, 보조 인덱스를 모두 제거합니다.

    실행 상태는 호출마다 만들어지는 EvictionSummary에만 기록되므로
    서로 다른 네임스페이스에 대한 호출을 여러 스레드에서 동시에 실행해도 됩니다.
    같은 네임스페이스에 대한 동시 호출은 조정하지 않습니다 (삭제는 멱등).
    """

    def __init__(self, redis_conn: Redis,
                 settings: Optional[EvictionSettings] = None,
                 enumerator: Optional[KeyEnumerator] = None,
                 deleter: Optional[BatchDeleter] = None,
                 cleaner: Optional[AuxiliaryCleaner] = None):
        self.redis_conn = redis_conn
        self.settings = settings or EvictionSettings()
        self.enumerator = enumerator or KeyEnumerator(redis_conn, page_size=self.settings.scan_count)
        self.deleter = deleter or BatchDeleter(
            redis_conn,
            max_batch_size=self.settings.batch_size,
            unlink=self.settings.use_unlink,
        )
        self.cleaner = cleaner or AuxiliaryCleaner(
            redis_conn,
            counter_key_template=self.settings.counter_key_template,
            index_name_template=self.settings.index_name_template,
            drop_index_documents=self.settings.drop_index_documents,
        )

    def match_pattern(self, namespace: str) -> str:
        return build_match_pattern(namespace, self.settings.separator)

    def preview(self, namespace: str, sample_size: int = 10) -> NamespacePreview:
        """
        삭제 대상 키 개수와 앞쪽 일부 키를 조회합니다. 아무것도 삭제하지 않습니다.

        Raises:
            ScanFailed: 스캔 도중 Redis 오류가 발생한 경우
        """
        preview = NamespacePreview(namespace=namespace)
        try:
            validate_namespace(namespace)
        except NoOp as e:
            preview.rejected = True
            preview.reason = e.reason
            return preview

        preview.pattern = self.match_pattern(namespace)
        prefix = namespace + self.settings.separator
        preview.counter_key = self.cleaner.counter_key(namespace)

        for key in self.enumerator.iter_keys(preview.pattern, prefix=prefix):
            text = key_to_text(key)
            if text == preview.counter_key:
                continue
            preview.total += 1
            if len(preview.sample_keys) < sample_size:
                preview.sample_keys.append(text)

        try:
            preview.counter_exists = bool(self.redis_conn.exists(preview.counter_key))
        except RedisError as e:
            preview.counter_error = str(e)
            logger.error(f"[미리보기] 카운터 '{preview.counter_key}' 확인 중 오류: {e}")
        return preview

    def evict_namespace(self, namespace: str,
                        cancel_event: Optional[threading.Event] = None,
                        progress: Optional[ProgressCallback] = None) -> EvictionSummary:
        """
        네임스페이스를 삭제하고 요약을 반환합니다.

        Args:
            namespace: 삭제할 네임스페이스 (예: "ns" → "ns:*" 키)
            cancel_event: 설정되면 진행 중인 요청 이후 더 이상 스캔/삭제하지 않음
            progress: 배치 삭제마다 (삭제 개수, 요약)으로 호출됨

        Returns:
            EvictionSummary: status는 complete, partial, noop 중 하나
        """
        start_time = time.time()
        summary = EvictionSummary(namespace=namespace)

        try:
            validate_namespace(namespace)
        except NoOp as e:
            summary.status = EvictionStatus.NOOP
            summary.phase = EvictionPhase.REJECTED
            summary.reason = e.reason
            logger.warning(f"[네임스페이스 삭제] 거부됨: {e}")
            return summary

        summary.pattern = self.match_pattern(namespace)
        logger.info(f"[네임스페이스 삭제] 시작: namespace={namespace}, pattern={summary.pattern}")

        self._delete_entries(summary, namespace + self.settings.separator,
                             self.cleaner.counter_key(namespace), cancel_event, progress)

        if summary.cancelled:
            logger.warning("[네임스페이스 삭제] 취소되어 카운터/인덱스 정리를 건너뜁니다.")
        else:
            summary.phase = EvictionPhase.AUX_CLEANUP
            aux = self.cleaner.cleanup(namespace)
            summary.counter_removed = aux.counter_removed
            summary.counter_error = aux.counter_error
            summary.index_removed = aux.index_removed
            summary.index_status = aux.index_status
            summary.index_error = aux.index_error

        if summary.error or summary.cancelled or summary.counter_error:
            summary.status = EvictionStatus.PARTIAL
        else:
            summary.status = EvictionStatus.COMPLETE

        summary.phase = EvictionPhase.DONE
        summary.elapsed = time.time() - start_time
        logger.info(
            f"[네임스페이스 삭제] 완료: namespace={namespace}, status={summary.status.value}, "
            f"deleted={summary.deleted}, batches={summary.batches}, "
            f"counter_removed={summary.counter_removed}, index={summary.index_status.value}, "
            f"{summary.elapsed:.3f}초"
        )
        return summary

    def _delete_entries(self, summary: EvictionSummary, prefix: str, counter_key: str,
                        cancel_event: Optional[threading.Event],
                        progress: Optional[ProgressCallback]) -> None:
        """
        스캔 페이지를 배치로 나눠 삭제합니다. 실패 시 지금까지의 개수를 유지합니다.

        카운터 키가 항목 패턴과 겹치면 (예: ns:num) 항목에서 빼고 보조 정리에서 삭제합니다.
        """
        if _is_set(cancel_event):
            summary.cancelled = True
            return

        summary.phase = EvictionPhase.SCANNING
        try:
            for batch in self.enumerator.scan(summary.pattern, prefix=prefix):
                entry_keys = [key for key in batch.keys if key_to_text(key) != counter_key]
                for keys in chunked(entry_keys, self.deleter.max_batch_size):
                    if _is_set(cancel_event):
                        summary.cancelled = True
                        return
                    summary.phase = EvictionPhase.DELETING
                    deleted = self.deleter.delete_batch(keys)
                    summary.deleted += deleted
                    summary.batches += 1
                    if progress is not None:
                        progress(deleted, summary)

                if not batch.is_last and _is_set(cancel_event):
                    summary.cancelled = True
                    return
                summary.phase = EvictionPhase.SCANNING

        except (ScanFailed, DeleteFailed) as e:
            summary.error = str(e)
            logger.error(f"[네임스페이스 삭제] 중단: {e} (지금까지 {summary.deleted}개 삭제)")


def _is_set(event: Optional[threading.Event]) -> bool:
    return event is not None and event.is_set()
