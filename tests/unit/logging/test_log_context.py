# tests/unit/logging/test_log_context.py — v1
"""Tests for logging/context.py — manifest/session tags on log records."""

from __future__ import annotations

import asyncio

import pytest

from fieldsync.logging.context import (
    LogContext,
    clear_context,
    component_context,
    get_context,
    set_session_context,
)
from fieldsync.sync.poller import LiveSyncPoller


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        assert get_context() == LogContext()
        assert get_context().as_dict() == {}
        assert get_context().label() == ""

    def test_set_session_context(self):
        set_session_context(500, "abc123")
        ctx = get_context()
        assert ctx.manifest_id == 500
        assert ctx.session_id == "abc123"
        assert ctx.component == "session"

    def test_as_dict_filters_none(self):
        set_session_context(500, "abc123", component=None)
        assert get_context().as_dict() == {"manifest_id": 500, "session_id": "abc123"}

    def test_label(self):
        set_session_context(42, "s", component="poller")
        assert get_context().label() == "[manifest 42] (poller)"

    def test_clear(self):
        set_session_context(500, "abc123")
        clear_context()
        assert get_context() == LogContext()


class TestComponentContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_restores_previous_component(self):
        set_session_context(500, "abc123")
        with component_context("submission") as ctx:
            assert ctx.component == "submission"
            assert get_context().manifest_id == 500
        assert get_context().component == "session"

    def test_restores_on_error(self):
        set_session_context(500, "abc123")
        with pytest.raises(RuntimeError):
            with component_context("submission"):
                raise RuntimeError("boom")
        assert get_context().component == "session"

    def test_nested(self):
        with component_context("outer"):
            with component_context("inner"):
                assert get_context().component == "inner"
            assert get_context().component == "outer"
        assert get_context().component is None


class TestTaskPropagation:
    def teardown_method(self):
        clear_context()

    @pytest.mark.asyncio
    async def test_tasks_inherit_context(self):
        set_session_context(7, "s1")

        async def read():
            return get_context().manifest_id

        assert await asyncio.create_task(read()) == 7

    @pytest.mark.asyncio
    async def test_poller_tags_its_records(self):
        set_session_context(7, "s1")
        seen: list[LogContext] = []
        done = asyncio.Event()

        async def fetch():
            seen.append(get_context())
            done.set()
            return None

        poller = LiveSyncPoller(interval_s=0.01)
        poller.start(fetch, lambda manifest: None)
        await asyncio.wait_for(done.wait(), timeout=1)
        poller.stop()
        await poller.wait_stopped()

        assert seen[0].manifest_id == 7
        assert seen[0].component == "poller"
        assert get_context().component == "session"
