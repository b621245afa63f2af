"""Tests for speedcheck.config -- defaults, file loading and validation."""

import json
import os
import tempfile
import unittest
from dataclasses import FrozenInstanceError, replace
from unittest import mock

from speedcheck import constants as c
from speedcheck.config import EngineConfig, Endpoints, config_path, load_config, validate_config
from speedcheck.errors import ConfigError


class TestDefaults(unittest.TestCase):
    def test_engine_defaults(self):
        cfg = EngineConfig()
        self.assertEqual(cfg.ping_count, 10)
        self.assertEqual(cfg.download_workers, 6)
        self.assertEqual(cfg.upload_workers, 4)
        self.assertEqual(cfg.download_sizes, (10_000_000, 25_000_000, 50_000_000))
        self.assertEqual(cfg.upload_chunk_size, 1_000_000)
        self.assertEqual(cfg.sample_interval, 0.1)
        self.assertEqual(cfg.stability_window, 15)
        self.assertEqual(cfg.stability_tolerance, 5.0)
        self.assertEqual(cfg.stable_ticks_required, 10)
        self.assertEqual((cfg.min_duration, cfg.max_duration), (10.0, 20.0))
        validate_config(cfg)

    def test_more_download_than_upload_workers(self):
        self.assertGreater(c.DOWNLOAD_WORKERS, c.UPLOAD_WORKERS)

    def test_endpoints(self):
        ep = Endpoints()
        self.assertTrue(ep.ping.startswith("https://"))
        self.assertTrue(ep.download.startswith("https://"))
        self.assertTrue(ep.upload.startswith("https://"))

    def test_frozen(self):
        with self.assertRaises(FrozenInstanceError):
            EngineConfig().ping_count = 3

    def test_to_dict(self):
        d = EngineConfig().to_dict()
        self.assertEqual(d["download_sizes"], list(c.DOWNLOAD_SIZES))
        self.assertIn("ping", d["endpoints"])


class TestValidation(unittest.TestCase):
    def _invalid(self, **changes):
        with self.assertRaises(ConfigError):
            validate_config(replace(EngineConfig(), **changes))

    def test_ping_count(self):
        self._invalid(ping_count=2)
        self._invalid(ping_count=c.MAX_PING_COUNT + 1)

    def test_workers(self):
        self._invalid(download_workers=0)
        self._invalid(upload_workers=c.MAX_WORKERS + 1)

    def test_durations(self):
        self._invalid(min_duration=30.0, max_duration=20.0)
        self._invalid(max_duration=0.0, min_duration=0.0)
        self._invalid(max_duration=c.MAX_ALLOWED_DURATION + 1)

    def test_sizes(self):
        self._invalid(download_sizes=())
        self._invalid(download_sizes=(100, 0))

    def test_misc(self):
        self._invalid(sample_interval=0)
        self._invalid(stability_window=0)
        self._invalid(stability_tolerance=-1)
        self._invalid(warmup_fraction=1.0)
        self._invalid(settle_delay=-0.5)

    def test_config_error_is_value_error(self):
        self.assertTrue(issubclass(ConfigError, ValueError))

    def test_with_overrides(self):
        cfg = EngineConfig().with_overrides(ping_count=20, max_duration=None)
        self.assertEqual(cfg.ping_count, 20)
        self.assertEqual(cfg.max_duration, c.MAX_PHASE_DURATION)
        with self.assertRaises(ConfigError):
            EngineConfig().with_overrides(ping_count=1)


class TestLoadConfig(unittest.TestCase):
    def test_missing_default_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "nope.json")
            with mock.patch("speedcheck.config._config_path", return_value=path):
                self.assertEqual(load_config(), EngineConfig())

    def test_missing_explicit_file_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ConfigError):
                load_config(os.path.join(tmpdir, "nope.json"))

    def test_mistyped_value_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as fh:
                json.dump({"ping_count": "10"}, fh)
            with self.assertRaises(ConfigError):
                load_config(path)

    def test_validate_mistyped_value(self):
        with self.assertRaises(ConfigError):
            validate_config(replace(EngineConfig(), stability_tolerance="5"))

    def test_overrides_and_endpoints(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as fh:
                json.dump({
                    "ping_count": 20,
                    "download_sizes": [1000, 2000],
                    "endpoints": {"ping": "https://example.test/ping"},
                    "unknown_key": True,
                }, fh)
            cfg = load_config(path)
            self.assertEqual(cfg.ping_count, 20)
            self.assertEqual(cfg.download_sizes, (1000, 2000))
            self.assertEqual(cfg.endpoints.ping, "https://example.test/ping")
            self.assertEqual(cfg.endpoints.upload, c.UPLOAD_URL)
            self.assertEqual(cfg.upload_workers, c.UPLOAD_WORKERS)

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as fh:
                fh.write("NOT JSON")
            with self.assertLogs("speedcheck.config", level="WARNING"):
                cfg = load_config(path)
            self.assertEqual(cfg, EngineConfig())

    def test_out_of_range_raises(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as fh:
                json.dump({"download_workers": 0}, fh)
            with self.assertRaises(ConfigError):
                load_config(path)

    def test_default_location(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as fh:
                json.dump({"upload_workers": 2}, fh)
            with mock.patch("speedcheck.config._config_path", return_value=path):
                self.assertEqual(load_config().upload_workers, 2)
                self.assertEqual(config_path(), path)


if __name__ == "__main__":
    unittest.main()
