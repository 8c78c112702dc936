from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from redis import ConnectionPool, Redis
from typing import Any, Dict, List, Optional
import logging

from namespace_cleanup.exceptions import ScanFailed
from namespace_cleanup.services.redis_service import EvictionSettings, create_connection_pool, create_redis_connection
from namespace_cleanup.services.namespace_evictor import EvictionStatus, NamespaceEvictor


# 로깅 설정
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Redis Namespace Cleanup API", version="1.0.0")


# CORS 설정
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_pool: Optional[ConnectionPool] = None


# -----------------------------
# ✅ 의존성
# -----------------------------
def get_redis_connection() -> Redis:
    global _pool
    if _pool is None:
        # 키는 bytes 그대로 SCAN → DEL (UTF-8이 아닌 키 포함)
        _pool = create_connection_pool(decode_responses=False)
    return create_redis_connection(pool=_pool)


def get_evictor(redis_conn: Redis = Depends(get_redis_connection)) -> NamespaceEvictor:
    return NamespaceEvictor(redis_conn, settings=EvictionSettings.from_env())


# -----------------------------
# ✅ Pydantic 모델
# -----------------------------
class PreviewResponse(BaseModel):
    state: bool
    namespace: str
    pattern: str
    total: int
    sample_keys: List[str] = []
    counter_key: Optional[str] = None
    counter_exists: bool = False
    counter_error: Optional[str] = None


class EvictionResponse(BaseModel):
    state: bool
    status: str
    deleted: int
    summary: Dict[str, Any]
    error: Optional[str] = None


# -----------------------------
# ✅ 관리자 API
# -----------------------------
@app.get("/admin/namespace/{namespace}", response_model=PreviewResponse)
def preview_namespace(namespace: str, sample_size: int = 10,
                      evictor: NamespaceEvictor = Depends(get_evictor)):
    """
    네임스페이스 삭제 대상 미리보기 (삭제하지 않음)
    """
    try:
        preview = evictor.preview(namespace, sample_size=sample_size)
    except ScanFailed as e:
        logger.error("❌ 삭제 대상 조회 실패", exc_info=e)
        raise HTTPException(status_code=503, detail=str(e))

    if preview.rejected:
        raise HTTPException(status_code=400, detail=preview.reason)

    return PreviewResponse(
        state=True,
        namespace=preview.namespace,
        pattern=preview.pattern,
        total=preview.total,
        sample_keys=preview.sample_keys,
        counter_key=preview.counter_key,
        counter_exists=preview.counter_exists,
        counter_error=preview.counter_error,
    )


@app.delete("/admin/namespace/{namespace}", response_model=EvictionResponse)
def delete_namespace(namespace: str, evictor: NamespaceEvictor = Depends(get_evictor)):
    """
    네임스페이스 삭제 API
    - partial 결과여도 지금까지 삭제된 개수를 그대로 돌려줍니다. 다시 호출하면 이어서 삭제됩니다.
    """
    logger.info(f"🗑️ 네임스페이스 삭제 요청: {namespace}")
    summary = evictor.evict_namespace(namespace)

    if summary.status == EvictionStatus.NOOP:
        raise HTTPException(status_code=400, detail=summary.reason)

    return EvictionResponse(
        state=summary.status == EvictionStatus.COMPLETE,
        status=summary.status.value,
        deleted=summary.deleted,
        summary=summary.to_dict(),
        error=summary.error,
    )


# -----------------------------
# ✅ 헬스체크
# -----------------------------
@app.get("/health")
def health_check(redis_conn: Redis = Depends(get_redis_connection)):
    """헬스체크 엔드포인트"""
    try:
        redis_conn.ping()
        return {
            "status": "healthy",
            "redis": "connected",
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
