"""
Unit tests for the event emitter.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from service_visibility.app.events.emitter import EventEmitter, ROLE_UPDATE


class TestEventEmitter:
    """Test cases for EventEmitter."""

    @pytest.fixture
    def emitter(self):
        return EventEmitter()

    @pytest.fixture
    def payload(self):
        return {"roleId": "viewer", "feature": "analytics", "enabled": True}

    @pytest.mark.asyncio
    async def test_emit_to_sync_and_async_handlers(self, emitter, payload):
        sync_handler = MagicMock()
        async_handler = AsyncMock()
        emitter.subscribe(ROLE_UPDATE, sync_handler)
        emitter.subscribe(ROLE_UPDATE, async_handler)

        delivered = await emitter.emit(ROLE_UPDATE, payload)

        assert delivered == 2
        sync_handler.assert_called_once_with(payload)
        async_handler.assert_awaited_once_with(payload)

    @pytest.mark.asyncio
    async def test_only_matching_event(self, emitter, payload):
        handler = MagicMock()
        emitter.subscribe("somethingElse", handler)

        assert await emitter.emit(ROLE_UPDATE, payload) == 0
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsubscribe(self, emitter, payload):
        handler = MagicMock()
        subscription_id = emitter.subscribe(ROLE_UPDATE, handler)

        assert emitter.unsubscribe(subscription_id) is True
        assert emitter.unsubscribe(subscription_id) is False
        assert emitter.subscriber_count(ROLE_UPDATE) == 0

        await emitter.emit(ROLE_UPDATE, payload)
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self, emitter, payload):
        failing = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        emitter.subscribe(ROLE_UPDATE, failing)
        emitter.subscribe(ROLE_UPDATE, healthy)

        delivered = await emitter.emit(ROLE_UPDATE, payload)

        assert delivered == 1
        healthy.assert_called_once_with(payload)

    @pytest.mark.asyncio
    async def test_handlers_receive_copies(self, emitter, payload):
        def mutate(event):
            event["enabled"] = False

        seen = []
        emitter.subscribe(ROLE_UPDATE, mutate)
        emitter.subscribe(ROLE_UPDATE, seen.append)

        await emitter.emit(ROLE_UPDATE, payload)

        assert seen == [payload]
        assert payload["enabled"] is True
