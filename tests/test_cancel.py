"""Tests for speedcheck.cancel -- the run's cancellation token."""

import asyncio
import time
import unittest

from speedcheck.cancel import CancellationToken
from speedcheck.errors import Aborted


class TestCancellationToken(unittest.IsolatedAsyncioTestCase):
    async def test_initial_state(self):
        token = CancellationToken()
        self.assertFalse(token.cancelled)
        token.raise_if_cancelled()

    async def test_cancel(self):
        token = CancellationToken()
        token.cancel()
        self.assertTrue(token.cancelled)
        with self.assertRaises(Aborted):
            token.raise_if_cancelled()

    async def test_sleep_completes(self):
        token = CancellationToken()
        t0 = time.perf_counter()
        await token.sleep(0.02)
        self.assertGreaterEqual(time.perf_counter() - t0, 0.015)

    async def test_sleep_zero(self):
        await CancellationToken().sleep(0)

    async def test_sleep_wakes_on_cancel(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.01, token.cancel)
        t0 = time.perf_counter()
        with self.assertRaises(Aborted):
            await token.sleep(5.0)
        self.assertLess(time.perf_counter() - t0, 1.0)

    async def test_sleep_after_cancel(self):
        token = CancellationToken()
        token.cancel()
        with self.assertRaises(Aborted):
            await token.sleep(0.01)

    async def test_run_returns_result(self):
        async def _answer():
            await asyncio.sleep(0)
            return 42
        self.assertEqual(await CancellationToken().run(_answer()), 42)

    async def test_run_propagates_errors(self):
        async def _boom():
            raise RuntimeError("boom")
        with self.assertRaises(RuntimeError):
            await CancellationToken().run(_boom())

    async def test_run_abandons_stalled_call(self):
        token = CancellationToken()
        cancelled = asyncio.Event()

        async def _stall():
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        asyncio.get_running_loop().call_later(0.01, token.cancel)
        with self.assertRaises(Aborted):
            await asyncio.wait_for(token.run(_stall()), 1.0)
        self.assertTrue(cancelled.is_set())

    async def test_run_after_cancel(self):
        token = CancellationToken()
        token.cancel()
        coro = asyncio.sleep(3600)
        with self.assertRaises(Aborted):
            await token.run(coro)
        self.assertIsNone(coro.cr_frame)


if __name__ == "__main__":
    unittest.main()
