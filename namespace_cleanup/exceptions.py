# ===================================================================
# 파일: exceptions.py
# 설명: 네임스페이스 정리 작업에서 사용하는 예외 정의
# ===================================================================

class NamespaceCleanupError(Exception):
    """네임스페이스 정리 관련 예외의 기본 클래스"""


class NoOp(NamespaceCleanupError):
    """안전하지 않은(빈 값, 전체 와일드카드) 네임스페이스가 거부되었을 때 발생합니다."""

    def __init__(self, namespace: str, reason: str):
        self.namespace = namespace
        self.reason = reason
        super().__init__(f"네임스페이스 '{namespace}' 거부: {reason}")


class ScanFailed(NamespaceCleanupError):
    """SCAN 페이지 조회가 실패했을 때 발생합니다."""

    def __init__(self, pattern: str, cursor: int, detail: str = ""):
        self.pattern = pattern
        self.cursor = cursor
        msg = f"SCAN 실패 (pattern={pattern}, cursor={cursor})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class DeleteFailed(NamespaceCleanupError):
    """배치 삭제 요청 전체가 거부되었을 때 발생합니다."""

    def __init__(self, batch_size: int, detail: str = ""):
        self.batch_size = batch_size
        msg = f"배치 삭제 실패 ({batch_size}개)"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class IndexCleanupFailed(NamespaceCleanupError):
    """보조 인덱스 삭제 실패. 요약에 기록만 되고 상위로 전파되지 않습니다."""

    def __init__(self, index_name: str, detail: str = "", absent: bool = False):
        self.index_name = index_name
        self.absent = absent
        msg = f"인덱스 '{index_name}' 삭제 실패"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)
