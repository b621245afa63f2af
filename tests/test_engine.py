"""End-to-end tests for the phase orchestrator with a fake transport."""

import asyncio
import unittest
from dataclasses import replace

from speedcheck.engine import SpeedTestEngine
from speedcheck.errors import TransientTransferFailure
from speedcheck.state import Phase

from fakes import FAST_CONFIG, FakeTransport, factory_for


def _phases(snapshots):
    phases = []
    for s in snapshots:
        if not phases or phases[-1] is not s.phase:
            phases.append(s.phase)
    return phases


async def _wait_for_phase(engine, phase, timeout=2.0):
    async def _poll():
        while engine.state.phase is not phase:
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_poll(), timeout)


class TestSpeedTestEngine(unittest.IsolatedAsyncioTestCase):
    def _engine(self, transport=None, config=FAST_CONFIG):
        self.transport = transport or FakeTransport()
        engine = SpeedTestEngine(config, transport_factory=factory_for(self.transport))
        self.snapshots = []
        engine.subscribe(self.snapshots.append)
        return engine

    async def test_full_run(self):
        engine = self._engine()
        final = await engine.run()

        self.assertIs(final.phase, Phase.COMPLETE)
        self.assertEqual(
            _phases(self.snapshots),
            [Phase.PING, Phase.DOWNLOAD, Phase.UPLOAD, Phase.COMPLETE],
        )
        # pings cycle 10, 12, 11, 13, 40 -> interior [11, 12, 13]
        self.assertAlmostEqual(final.results.ping, 12.0)
        self.assertAlmostEqual(final.results.jitter, 2 / 3)
        self.assertGreater(final.results.download, 0)
        self.assertGreater(final.results.upload, 0)
        self.assertEqual(final.progress, 100.0)

        self.assertIsNotNone(engine.report)
        self.assertEqual(engine.report.results, final.results)
        self.assertEqual(len(engine.report.latency.pings), FAST_CONFIG.ping_count)
        self.assertEqual(engine.report.download.direction, "download")
        self.assertIn("upload", engine.report.to_dict())

    async def test_progress_bounds_and_phase_end(self):
        engine = self._engine()
        await engine.run()

        for s in self.snapshots:
            self.assertGreaterEqual(s.progress, 0.0)
            self.assertLessEqual(s.progress, 100.0)

        for prev, cur in zip(self.snapshots, self.snapshots[1:]):
            if cur.phase is prev.phase:
                self.assertGreaterEqual(cur.progress, prev.progress)
            else:
                self.assertEqual(prev.progress, 100.0)

    async def test_instantaneous_speed_published(self):
        engine = self._engine()
        await engine.run()
        speeds = [s.instantaneous_speed for s in self.snapshots if s.phase is Phase.DOWNLOAD]
        self.assertTrue(any(v > 0 for v in speeds))

    async def test_start_is_noop_while_running(self):
        engine = self._engine()
        self.assertTrue(engine.start())
        self.assertFalse(engine.start())
        await engine.wait()
        self.assertIs(engine.state.phase, Phase.COMPLETE)

    async def test_restart_after_complete(self):
        engine = self._engine()
        await engine.run()
        self.assertTrue(engine.start())
        self.assertIs(engine.state.phase, Phase.IDLE)
        final = await engine.wait()
        self.assertIs(final.phase, Phase.COMPLETE)

    async def test_reset_mid_download(self):
        cfg = replace(FAST_CONFIG, min_duration=10.0, max_duration=10.0)
        engine = self._engine(FakeTransport(delay=0.005), cfg)
        engine.start()
        await _wait_for_phase(engine, Phase.DOWNLOAD)
        await asyncio.sleep(0.05)

        await engine.reset()

        self.assertIs(engine.state.phase, Phase.IDLE)
        self.assertFalse(engine.running)
        self.assertEqual(self.transport.active, 0)
        self.assertIsNone(engine.report)

        published = len(self.snapshots)
        await asyncio.sleep(0.1)
        self.assertEqual(len(self.snapshots), published)
        self.assertNotIn(Phase.COMPLETE, _phases(self.snapshots))

    async def test_reset_when_idle(self):
        engine = self._engine()
        await engine.reset()
        self.assertIs(engine.state.phase, Phase.IDLE)

    async def test_reset_clears_results(self):
        engine = self._engine()
        await engine.run()
        await engine.reset()
        self.assertIsNone(engine.state.results.ping)
        self.assertIsNone(engine.state.results.download)

    async def test_abort_returns_to_idle(self):
        cfg = replace(FAST_CONFIG, min_duration=10.0, max_duration=10.0)
        engine = self._engine(config=cfg)
        engine.start()
        await _wait_for_phase(engine, Phase.DOWNLOAD)
        engine.abort()
        final = await asyncio.wait_for(engine.wait(), 2.0)
        self.assertIs(final.phase, Phase.IDLE)
        self.assertEqual(self.transport.active, 0)

    async def test_abort_during_stalled_ping(self):
        engine = self._engine(FakeTransport(probe_delay=3600))
        engine.start()
        await _wait_for_phase(engine, Phase.PING)
        await asyncio.sleep(0.01)
        engine.abort()
        final = await asyncio.wait_for(engine.wait(), 1.0)
        self.assertIs(final.phase, Phase.IDLE)
        self.assertEqual(len(self.transport.probes), 1)

    async def test_unexpected_failure_returns_to_idle(self):
        engine = self._engine(FakeTransport(error=RuntimeError("boom")))
        with self.assertLogs("speedcheck.engine", level="ERROR"):
            final = await engine.run()
        self.assertIs(final.phase, Phase.IDLE)
        self.assertNotIn(Phase.COMPLETE, _phases(self.snapshots))
        self.assertIsNone(engine.report)
        self.assertIsNone(final.results.ping)

    async def test_insufficient_pings_leaves_ping_unset(self):
        boom = TransientTransferFailure("unreachable")
        engine = self._engine(FakeTransport(pings=[boom]))
        final = await engine.run()
        self.assertIs(final.phase, Phase.COMPLETE)
        self.assertIsNone(final.results.ping)
        self.assertIsNone(final.results.jitter)
        self.assertIsNotNone(final.results.download)

    async def test_dead_upload_leaves_upload_unset(self):
        cfg = replace(FAST_CONFIG, upload_sanity_timeout=0.0)
        engine = self._engine(config=cfg)
        final = await engine.run()
        self.assertIs(final.phase, Phase.COMPLETE)
        self.assertIsNotNone(final.results.download)
        self.assertIsNone(final.results.upload)
        self.assertFalse(engine.report.upload.available)


if __name__ == "__main__":
    unittest.main()
