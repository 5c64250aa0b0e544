"""
Tests for delayed and periodic tasks
"""

import asyncio
import pytest

from arcade.payments.invoices import InvoiceStore
from arcade.server.tasks import run_maintenance_tasks
from arcade.timers import DelayedTask, run_periodically


class TestDelayedTask:
    """Test cancellable delayed execution"""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        task = DelayedTask(0.01, lambda a, b: a + b, 2, 3)
        assert await task == 5
        assert task.done()

    @pytest.mark.asyncio
    async def test_awaits_coroutine_functions(self):
        async def fetch(value):
            await asyncio.sleep(0)
            return value * 2

        assert await DelayedTask(0, fetch, 21) == 42

    @pytest.mark.asyncio
    async def test_cancel_prevents_run(self):
        calls = []
        task = DelayedTask(10, calls.append, "ran")

        assert task.cancel() is True
        with pytest.raises(asyncio.CancelledError):
            await task
        assert task.cancelled()
        assert calls == []

    @pytest.mark.asyncio
    async def test_cancel_after_completion(self):
        task = DelayedTask(0, lambda: "done")
        await task
        assert task.cancel() is False

    @pytest.mark.asyncio
    async def test_errors_propagate_to_awaiter(self):
        def boom():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await DelayedTask(0, boom)

    @pytest.mark.asyncio
    async def test_negative_delay(self):
        with pytest.raises(ValueError):
            DelayedTask(-1, lambda: None)


class TestPeriodicTasks:
    """Test the periodic scheduler used for invoice sweeping"""

    @pytest.mark.asyncio
    async def test_runs_until_cancelled_and_survives_errors(self):
        calls = []

        def tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        runner = asyncio.create_task(run_periodically(0.01, tick, name="test"))
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        runner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await runner
        assert len(calls) >= 3

    @pytest.mark.asyncio
    async def test_maintenance_sweeps_invoices(self):
        store = InvoiceStore(amount=10_000, network="cronos-testnet", ttl_seconds=1)
        store.generate("0xabc")
        store.sweep_expired = lambda: store._invoices.clear()

        runner = asyncio.create_task(run_maintenance_tasks(store, interval_seconds=0.01))
        for _ in range(100):
            if len(store) == 0:
                break
            await asyncio.sleep(0.01)
        runner.cancel()

        with pytest.raises(asyncio.CancelledError):
            await runner
        assert len(store) == 0
