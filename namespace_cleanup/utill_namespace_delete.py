"""
utill_namespace_delete.py  –  네임스페이스 키 + 카운터 + 인덱스 일괄 삭제

사용법:
    python -m namespace_cleanup.utill_namespace_delete <namespace> [--yes] [--dry-run]

* 삭제 전 대상 키 개수와 처음 10개를 보여주고 확인을 받습니다.
* SCAN + 배치 DEL 로 처리하므로 Redis를 블로킹하지 않습니다.
* 일부만 삭제된 경우(partial) 다시 실행하면 나머지를 이어서 삭제합니다.
"""

import argparse
import json
import signal
import sys
import threading
from dataclasses import replace
from typing import List, Optional

from tqdm import tqdm

from namespace_cleanup.services.redis_service import EvictionSettings, create_raw_redis_connection
from namespace_cleanup.services.namespace_evictor import EvictionStatus, NamespaceEvictor
from namespace_cleanup.exceptions import ScanFailed

EXIT_COMPLETE = 0
EXIT_PARTIAL = 1
EXIT_ABORTED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Redis 네임스페이스 일괄 삭제")
    parser.add_argument("namespace", help="삭제할 네임스페이스 (예: ns → ns:* 키)")
    parser.add_argument("-y", "--yes", action="store_true", help="확인 없이 바로 삭제")
    parser.add_argument("--dry-run", action="store_true", help="삭제 대상만 출력하고 종료")
    parser.add_argument("--retries", type=int, default=0, help="partial 결과일 때 추가 재시도 횟수")
    parser.add_argument("--batch-size", type=int, default=None, help="DEL 한 번에 보낼 최대 키 개수")
    parser.add_argument("--scan-count", type=int, default=None, help="SCAN COUNT 힌트")
    parser.add_argument("--unlink", action="store_true", help="DEL 대신 UNLINK 사용")
    parser.add_argument("--drop-documents", action="store_true", help="FT.DROPINDEX 시 DD 옵션 사용")
    return parser


def build_settings(args: argparse.Namespace) -> EvictionSettings:
    overrides = {}
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.scan_count is not None:
        overrides["scan_count"] = args.scan_count
    if args.unlink:
        overrides["use_unlink"] = True
    if args.drop_documents:
        overrides["drop_index_documents"] = True
    # replace는 __post_init__ 검증을 다시 거침
    return replace(EvictionSettings.from_env(), **overrides)


def print_preview(preview) -> None:
    print(f"삭제될 키 목록 ({preview.total:,}개, pattern={preview.pattern}):")
    for key in preview.sample_keys:
        print(f"  - {key}")
    if preview.total > len(preview.sample_keys):
        print(f"  ... 그리고 {preview.total - len(preview.sample_keys):,}개 더")
    if preview.counter_error:
        print(f"⚠️ 카운터 키 '{preview.counter_key}' 확인 실패: {preview.counter_error}")
    else:
        state = "있음" if preview.counter_exists else "없음"
        print(f"카운터 키 '{preview.counter_key}': {state}")


def run_eviction(evictor: NamespaceEvictor, namespace: str, retries: int,
                 cancel_event: threading.Event, total_hint: Optional[int] = None):
    """partial 결과이면 retries 횟수만큼 다시 실행합니다. (삭제는 멱등)"""
    cumulative = 0
    attempts = 0
    summary = None

    with tqdm(total=total_hint, unit="key", desc=f"{namespace} 삭제") as bar:
        def on_progress(deleted, _summary):
            bar.update(deleted)

        while True:
            attempts += 1
            summary = evictor.evict_namespace(namespace, cancel_event=cancel_event, progress=on_progress)
            cumulative += summary.deleted
            if summary.status != EvictionStatus.PARTIAL or summary.cancelled or attempts > retries:
                break
            tqdm.write(f"⚠️ 일부만 삭제됨 ({summary.error}) → 재시도 {attempts}/{retries}")

    return summary, cumulative, attempts


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = build_settings(args)
    # 키는 bytes 그대로 SCAN → DEL (UTF-8이 아닌 키 포함)
    redis_conn = create_raw_redis_connection()
    evictor = NamespaceEvictor(redis_conn, settings=settings)

    try:
        preview = evictor.preview(args.namespace)
    except ScanFailed as e:
        print(f"❌ 삭제 대상 조회 실패: {e}")
        return EXIT_PARTIAL

    if preview.rejected:
        print(f"❌ 네임스페이스 거부: {preview.reason}")
        return EXIT_ABORTED

    print_preview(preview)

    if args.dry_run:
        print("dry-run: 삭제하지 않았습니다.")
        return EXIT_COMPLETE

    if not args.yes:
        confirm = input(f"\n정말로 '{args.namespace}' 네임스페이스({preview.total:,}개 키)를 삭제하시겠습니까? (y/N): ")
        if confirm.strip().lower() != 'y':
            print("삭제가 취소되었습니다.")
            return EXIT_ABORTED

    # Ctrl-C: 진행 중인 요청이 끝난 뒤 중단
    cancel_event = threading.Event()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel_event.set())
    try:
        summary, cumulative, attempts = run_eviction(
            evictor, args.namespace, args.retries, cancel_event, total_hint=preview.total
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if summary.cancelled:
        print("\n중단되었습니다. 다시 실행하면 남은 키를 이어서 삭제합니다.")

    result = summary.to_dict()
    result["total_deleted"] = cumulative
    result["attempts"] = attempts
    print(f"\n📊 [요약 결과]")
    print(json.dumps(result, indent=2, ensure_ascii=False))
    print(f"총 {cumulative:,}개 키 삭제, 상태={summary.status.value}")

    if summary.status == EvictionStatus.COMPLETE:
        return EXIT_COMPLETE
    if summary.status == EvictionStatus.NOOP:
        return EXIT_ABORTED
    return EXIT_PARTIAL


if __name__ == "__main__":
    sys.exit(main())
