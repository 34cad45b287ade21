"""
Tests for the Discord → Fitbit link registry.
"""

import pytest

from core.link_registry import LinkRegistry


class TestLinkRegistry:
    @pytest.mark.asyncio
    async def test_link_and_resolve(self, storage):
        registry = LinkRegistry(storage)
        await registry.link("A-user-42", "B-user-7")
        assert await registry.resolve("A-user-42") == "B-user-7"
        assert storage.keys() == ["link-A-user-42"]

    @pytest.mark.asyncio
    async def test_relink_last_write_wins(self, storage):
        registry = LinkRegistry(storage)
        await registry.link("A-user-42", "B-user-7")
        await registry.link("A-user-42", "B-user-9")
        assert await registry.resolve("A-user-42") == "B-user-9"

    @pytest.mark.asyncio
    async def test_resolve_unknown(self, storage):
        assert await LinkRegistry(storage).resolve("nobody") is None

    @pytest.mark.asyncio
    async def test_unlink(self, storage):
        registry = LinkRegistry(storage)
        await registry.link("A-user-42", "B-user-7")
        await registry.unlink("A-user-42")
        assert await registry.resolve("A-user-42") is None

    @pytest.mark.asyncio
    async def test_unlink_missing_is_noop(self, storage):
        await LinkRegistry(storage).unlink("nobody")
