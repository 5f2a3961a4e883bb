"""
Unit tests for the debounced change queue.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from service_visibility.app.queue.change_queue import ChangeQueue, FlushOutcome
from shared.test_helpers import SlowWriter


def make_handler(queue_ref, writer=None):
    """Flush handler that writes the pending intents and acknowledges them."""
    calls = []

    async def handler(role_id):
        queue = queue_ref[0]
        pending = queue.pending_for(role_id)
        calls.append((role_id, pending))
        if writer is not None:
            try:
                await writer(role_id, sorted(f for f, enabled in pending.items() if enabled))
            except ConnectionError as e:
                return FlushOutcome(role_id=role_id, success=False, changes=pending, error=str(e))
        queue.acknowledge(role_id, pending)
        return FlushOutcome(role_id=role_id, success=True, changes=pending, written=[])

    return handler, calls


class TestChangeQueue:
    """Test cases for ChangeQueue."""

    @pytest.fixture
    def queue_and_calls(self):
        ref = [None]
        handler, calls = make_handler(ref)
        ref[0] = ChangeQueue(handler, debounce_seconds=0.05)
        return ref[0], calls

    def test_stage_keeps_last_intent(self):
        queue = ChangeQueue(AsyncMock(), debounce_seconds=1.0)

        queue.stage("viewer", "analytics", True, schedule=False)
        queue.stage("viewer", "analytics", False, schedule=False)
        queue.stage("viewer", "analytics", True, schedule=False)

        assert queue.pending_for("viewer") == {"analytics": True}
        assert queue.pending_version("viewer") == 3

    def test_pending_for_returns_copy(self):
        queue = ChangeQueue(AsyncMock(), debounce_seconds=1.0)
        queue.stage("viewer", "analytics", True, schedule=False)

        queue.pending_for("viewer")["charts"] = True

        assert queue.pending_for("viewer") == {"analytics": True}

    def test_acknowledge_keeps_newer_intents(self):
        queue = ChangeQueue(AsyncMock(), debounce_seconds=1.0)
        queue.stage("viewer", "analytics", True, schedule=False)
        snapshot = queue.pending_for("viewer")

        queue.stage("viewer", "analytics", False, schedule=False)
        queue.stage("viewer", "charts", True, schedule=False)
        queue.acknowledge("viewer", snapshot)

        assert queue.pending_for("viewer") == {"analytics": False, "charts": True}

    def test_acknowledge_clears_role(self):
        queue = ChangeQueue(AsyncMock(), debounce_seconds=1.0)
        queue.stage("viewer", "analytics", True, schedule=False)

        queue.acknowledge("viewer", {"analytics": True})

        assert queue.has_pending("viewer") is False
        assert queue.pending_roles() == []

    @pytest.mark.asyncio
    async def test_rapid_toggles_flush_once(self, queue_and_calls):
        queue, calls = queue_and_calls

        queue.stage("viewer", "analytics", True)
        await asyncio.sleep(0.01)
        queue.stage("viewer", "analytics", False)
        await asyncio.sleep(0.01)
        queue.stage("viewer", "analytics", True)

        assert calls == []

        await queue.drain()

        assert calls == [("viewer", {"analytics": True})]
        assert queue.has_pending("viewer") is False

    @pytest.mark.asyncio
    async def test_different_features_same_role_batch(self, queue_and_calls):
        queue, calls = queue_and_calls

        queue.stage("viewer", "analytics", True)
        queue.stage("viewer", "charts", True)
        await queue.drain()

        assert calls == [("viewer", {"analytics": True, "charts": True})]

    @pytest.mark.asyncio
    async def test_roles_flush_independently(self, queue_and_calls):
        queue, calls = queue_and_calls

        queue.stage("viewer", "analytics", True)
        queue.stage("officer", "charts", False)
        await queue.drain()

        assert sorted(calls) == [("officer", {"charts": False}), ("viewer", {"analytics": True})]

    @pytest.mark.asyncio
    async def test_timer_restarts_on_new_toggle(self, queue_and_calls):
        queue, calls = queue_and_calls

        queue.stage("viewer", "analytics", True)
        await asyncio.sleep(0.03)
        queue.stage("viewer", "charts", True)
        await asyncio.sleep(0.03)

        # 0.06s since the first toggle but only 0.03s of quiet
        assert calls == []

        await queue.drain()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_discard_cancels_flush(self, queue_and_calls):
        queue, calls = queue_and_calls

        queue.stage("viewer", "analytics", True)
        assert queue.discard("viewer") == 1
        await asyncio.sleep(0.08)

        assert calls == []
        assert queue.has_timer("viewer") is False

    @pytest.mark.asyncio
    async def test_flush_without_pending_returns_none(self, queue_and_calls):
        queue, calls = queue_and_calls

        assert await queue.flush("viewer") is None
        assert calls == []

    @pytest.mark.asyncio
    async def test_explicit_flush_cancels_timer(self, queue_and_calls):
        queue, calls = queue_and_calls
        queue.stage("viewer", "analytics", True)

        outcome = await queue.flush("viewer")
        await asyncio.sleep(0.08)

        assert outcome.success is True
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_same_role_writes_are_serialized(self):
        writer = SlowWriter(delay=0.05)
        ref = [None]
        handler, _ = make_handler(ref, writer)
        queue = ChangeQueue(handler, debounce_seconds=0.01)
        ref[0] = queue

        queue.stage("viewer", "analytics", True)
        await asyncio.sleep(0.02)
        # First write is in flight; this one must wait for it
        queue.stage("viewer", "charts", True)
        await queue.drain()

        assert writer.max_active["viewer"] == 1
        assert [role for role, _ in writer.calls] == ["viewer", "viewer"]

    @pytest.mark.asyncio
    async def test_cross_role_writes_overlap(self):
        writer = SlowWriter(delay=0.1)
        ref = [None]
        handler, _ = make_handler(ref, writer)
        queue = ChangeQueue(handler, debounce_seconds=0.01)
        ref[0] = queue

        queue.stage("viewer", "analytics", True)
        queue.stage("officer", "analytics", True)

        started = asyncio.get_running_loop().time()
        await queue.drain()
        elapsed = asyncio.get_running_loop().time() - started

        assert len(writer.calls) == 2
        assert elapsed < 0.18

    @pytest.mark.asyncio
    async def test_failed_flush_keeps_pending(self):
        writer = SlowWriter(delay=0.0, fail_roles=["viewer"])
        ref = [None]
        handler, _ = make_handler(ref, writer)
        queue = ChangeQueue(handler, debounce_seconds=0.01)
        ref[0] = queue

        queue.stage("viewer", "analytics", True)
        outcome = await queue.flush("viewer")

        assert outcome.success is False
        assert queue.pending_for("viewer") == {"analytics": True}
        # No automatic retry
        assert queue.has_timer("viewer") is False

    @pytest.mark.asyncio
    async def test_flush_all(self, queue_and_calls):
        queue, calls = queue_and_calls
        queue.stage("viewer", "analytics", True, schedule=False)
        queue.stage("officer", "charts", True, schedule=False)

        outcomes = await queue.flush_all()

        assert {outcome.role_id for outcome in outcomes} == {"viewer", "officer"}
        assert queue.pending_roles() == []

    @pytest.mark.asyncio
    async def test_close_cancels_timers_and_keeps_pending(self, queue_and_calls):
        queue, calls = queue_and_calls
        queue.stage("viewer", "analytics", True)

        await queue.close()
        await asyncio.sleep(0.08)

        assert calls == []
        assert queue.pending_for("viewer") == {"analytics": True}
