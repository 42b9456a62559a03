"""Unit tests for the logged-task helpers."""

import asyncio
import logging

import pytest

from devicelink.core.asyncio_utils import create_logged_task, drain_pending


class TestCreateLoggedTask:

    @pytest.mark.asyncio
    async def test_exception_is_logged(self, caplog):
        async def explode():
            raise RuntimeError("engine exploded")

        with caplog.at_level(logging.ERROR):
            task = create_logged_task(explode(), context="ping@dev")
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        assert "ping@dev" in caplog.text

    @pytest.mark.asyncio
    async def test_pending_set_tracks_task(self):
        pending = set()
        task = create_logged_task(asyncio.sleep(0), pending=pending)
        assert task in pending
        await task
        await asyncio.sleep(0)
        assert task not in pending


class TestDrainPending:

    @pytest.mark.asyncio
    async def test_drains_tasks_spawned_while_draining(self):
        pending = set()
        finished = []

        async def child():
            await asyncio.sleep(0)
            finished.append("child")

        async def parent():
            await asyncio.sleep(0)
            create_logged_task(child(), pending=pending)
            finished.append("parent")

        create_logged_task(parent(), pending=pending)

        drained = await drain_pending(pending)

        assert drained == 2
        assert sorted(finished) == ["child", "parent"]
        assert not pending

    @pytest.mark.asyncio
    async def test_empty(self):
        assert await drain_pending(set()) == 0
