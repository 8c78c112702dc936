"""Shared test fixtures."""

import re

import pytest
from redis.exceptions import ConnectionError, ResponseError

from namespace_cleanup.services.redis_service import EvictionSettings
from namespace_cleanup.services.namespace_evictor import NamespaceEvictor

_MISSING = object()


def _glob_to_regex(pattern):
    parts = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "*":
            parts.append(".*")
        elif ch == "?":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)


def _match_text(key):
    return key.decode("latin-1") if isinstance(key, bytes) else key


class FakeRedis:
    """Dict-backed stand-in for a redis-py client.

    SCAN walks an append-only insertion log, so cursors stay valid while keys
    are deleted between pages.  Failures are injected by call number.
    """

    def __init__(self, decode_responses=False):
        self.decode_responses = decode_responses
        self._data = {}
        self._order = []
        self._seen = set()
        self.indexes = {}
        self.scan_calls = 0
        self.delete_calls = 0
        self.unlink_calls = 0
        self.fail_scan_on = set()
        self.fail_delete_on = set()
        self.drop_index_error = None
        self.exists_error = None
        self.commands = []

    # ── helpers ──────────────────────────────────────────────

    def load(self, *keys, value="1"):
        for key in keys:
            self.set(key, value)
        return self

    def create_index(self, name, prefix):
        self.indexes[name] = prefix

    def keys_present(self):
        return sorted(self._data)

    # ── redis-py surface ────────────────────────────────────

    def set(self, key, value):
        if key not in self._seen:
            self._seen.add(key)
            self._order.append(key)
        self._data[key] = value
        return True

    def get(self, key):
        return self._data.get(key)

    def exists(self, *keys):
        if self.exists_error is not None:
            raise self.exists_error
        return sum(1 for key in keys if key in self._data)

    def ping(self):
        return True

    def scan(self, cursor=0, match=None, count=None):
        self.scan_calls += 1
        if self.scan_calls in self.fail_scan_on:
            raise ConnectionError("Connection reset by peer")

        count = count or 10
        window = self._order[cursor:cursor + count]
        regex = _glob_to_regex(match) if match is not None else None
        keys = [k for k in window if k in self._data and (regex is None or regex.fullmatch(_match_text(k)))]
        if self.decode_responses:
            # redis-py decodes replies strictly on decode_responses=True pools
            keys = [k.decode("utf-8") if isinstance(k, bytes) else k for k in keys]

        next_cursor = cursor + count
        if next_cursor >= len(self._order):
            next_cursor = 0
        return next_cursor, keys

    def delete(self, *keys):
        self.delete_calls += 1
        if self.delete_calls in self.fail_delete_on:
            raise ConnectionError("Connection reset by peer")
        return sum(1 for key in keys if self._data.pop(key, _MISSING) is not _MISSING)

    def unlink(self, *keys):
        self.unlink_calls += 1
        return self.delete(*keys)

    def execute_command(self, *args):
        self.commands.append(args)
        if args[0].upper() != "FT.DROPINDEX":
            raise ResponseError(f"unknown command '{args[0]}'")

        if self.drop_index_error is not None:
            raise self.drop_index_error

        name = args[1]
        if name not in self.indexes:
            raise ResponseError("Unknown Index name")

        prefix = self.indexes.pop(name)
        if "DD" in args[2:]:
            for key in [k for k in self._data if k.startswith(prefix)]:
                del self._data[key]
        return "OK"


@pytest.fixture
def redis_conn():
    return FakeRedis()


@pytest.fixture
def settings():
    return EvictionSettings(scan_count=100, batch_size=50)


@pytest.fixture
def evictor(redis_conn, settings):
    return NamespaceEvictor(redis_conn, settings=settings)


@pytest.fixture
def scenario_store(redis_conn):
    """ns:1..3, counter ns-vec_num=3, no index, plus unrelated other:1"""
    redis_conn.load("ns:1", "ns:2", "ns:3", "other:1")
    redis_conn.set("ns-vec_num", "3")
    return redis_conn
