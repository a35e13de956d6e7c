"""Tests for the sales-video unlock gate."""

from unittest.mock import AsyncMock

import pytest

from src.progress.unlock import RedisFlagStore, UnlockGate


VISITOR = "visitor-1234"


class TestUnlockGate:
    """Tests for UnlockGate."""

    def test_key_is_namespaced_per_visitor(self, flags) -> None:
        assert UnlockGate(VISITOR, flags).key == f"vsl_unlocked:{VISITOR}"
        assert UnlockGate("other-visitor", flags).key != UnlockGate(VISITOR, flags).key

    @pytest.mark.asyncio
    async def test_unlocks_at_threshold_once(self, flags) -> None:
        on_unlock = AsyncMock()
        gate = UnlockGate(VISITOR, flags, threshold=0.5, on_unlock=on_unlock)

        assert await gate.observe(0.49) is False
        assert gate.has_unlocked is False

        assert await gate.observe(0.5) is True
        assert await gate.observe(0.8) is False

        assert gate.has_unlocked is True
        assert flags.flags[gate.key] is True
        on_unlock.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stored_flag_suppresses_callback(self, flags) -> None:
        flags.flags[f"vsl_unlocked:{VISITOR}"] = True
        on_unlock = AsyncMock()
        gate = UnlockGate(VISITOR, flags, on_unlock=on_unlock)

        assert await gate.load() is True
        assert await gate.observe(0.9) is False
        on_unlock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_errors_do_not_block_unlock(self, flags) -> None:
        flags.error = ConnectionError("redis down")
        gate = UnlockGate(VISITOR, flags)

        assert await gate.load() is False
        assert await gate.observe(0.6) is True
        assert gate.has_unlocked is True

    @pytest.mark.asyncio
    async def test_display_progress_follows_curve(self, flags) -> None:
        gate = UnlockGate(VISITOR, flags)
        await gate.observe(0.05)
        assert gate.display_progress == pytest.approx(0.40)


class TestRedisFlagStore:
    """Tests for RedisFlagStore."""

    @pytest.mark.asyncio
    async def test_set_and_get(self) -> None:
        redis = AsyncMock()
        redis.get = AsyncMock(return_value="true")
        store = RedisFlagStore(redis, ttl_seconds=60)

        await store.set_flag("vsl_unlocked:x")
        redis.set.assert_awaited_once_with("vsl_unlocked:x", "true", ex=60)
        assert await store.get_flag("vsl_unlocked:x") is True

    @pytest.mark.asyncio
    async def test_missing_flag(self) -> None:
        redis = AsyncMock()
        redis.get = AsyncMock(return_value=None)
        assert await RedisFlagStore(redis).get_flag("vsl_unlocked:x") is False
