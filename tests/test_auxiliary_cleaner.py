"""Tests for AuxiliaryCleaner."""

import pytest
from redis.exceptions import ConnectionError, ResponseError

from namespace_cleanup.exceptions import IndexCleanupFailed
from namespace_cleanup.services.auxiliary_cleaner import AuxiliaryCleaner, IndexStatus


@pytest.fixture
def cleaner(redis_conn):
    return AuxiliaryCleaner(redis_conn)


def test_counter_present_index_absent(redis_conn, cleaner):
    redis_conn.set("ns-vec_num", "3")
    result = cleaner.cleanup("ns")

    assert result.counter_removed
    assert not result.index_removed
    assert result.index_status == IndexStatus.ABSENT
    assert "Unknown Index name" in result.index_error
    assert result.counter_error is None
    assert redis_conn.get("ns-vec_num") is None


def test_counter_absent_is_not_an_error(cleaner):
    result = cleaner.cleanup("ns")
    assert not result.counter_removed
    assert result.counter_error is None


def test_index_dropped(redis_conn, cleaner):
    redis_conn.create_index("ns", "ns:")
    result = cleaner.cleanup("ns")

    assert result.index_removed
    assert result.index_status == IndexStatus.DROPPED
    assert result.index_error is None
    assert redis_conn.commands == [("FT.DROPINDEX", "ns")]


def test_drop_index_documents(redis_conn):
    redis_conn.load("ns:1", "other:1")
    redis_conn.create_index("ns", "ns:")
    cleaner = AuxiliaryCleaner(redis_conn, drop_index_documents=True)

    assert cleaner.cleanup("ns").index_removed
    assert redis_conn.commands == [("FT.DROPINDEX", "ns", "DD")]
    assert redis_conn.keys_present() == ["other:1"]


def test_index_drop_error_is_recorded(redis_conn, cleaner):
    redis_conn.create_index("ns", "ns:")
    redis_conn.drop_index_error = ResponseError("LOADING Redis is loading the dataset in memory")
    result = cleaner.cleanup("ns")

    assert not result.index_removed
    assert result.index_status == IndexStatus.FAILED
    assert "LOADING" in result.index_error


def test_index_connection_error_is_recorded(redis_conn, cleaner):
    redis_conn.drop_index_error = ConnectionError("Connection refused")
    result = cleaner.cleanup("ns")
    assert result.index_status == IndexStatus.FAILED


def test_counter_failure_does_not_skip_index(redis_conn, cleaner):
    redis_conn.set("ns-vec_num", "3")
    redis_conn.create_index("ns", "ns:")
    redis_conn.fail_delete_on = {1}
    result = cleaner.cleanup("ns")

    assert not result.counter_removed
    assert "Connection reset" in result.counter_error
    assert result.index_status == IndexStatus.DROPPED


def test_drop_index_raises_index_cleanup_failed(cleaner):
    with pytest.raises(IndexCleanupFailed) as exc_info:
        cleaner.drop_index("missing")
    assert exc_info.value.absent
    assert exc_info.value.index_name == "missing"


def test_custom_templates(redis_conn):
    redis_conn.set("ns:num", "7")
    redis_conn.create_index("ns_idx", "ns:")
    cleaner = AuxiliaryCleaner(
        redis_conn,
        counter_key_template="{namespace}:num",
        index_name_template="{namespace}_idx",
    )
    result = cleaner.cleanup("ns")
    assert result.counter_removed
    assert result.index_removed


def test_to_dict(redis_conn, cleaner):
    data = cleaner.cleanup("ns").to_dict()
    assert data["index_status"] == "absent"
    assert data["counter_removed"] is False
