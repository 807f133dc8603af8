"""Tests for settings and request limits."""

from stakesplit.config import Settings
from stakesplit.optimizer.requests import Limits


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STAKESPLIT_MAX_BUDGET", raising=False)
        s = Settings(_env_file=None)
        assert s.max_budget == 10_000
        assert s.max_mask_candidates == 16
        assert s.backend_base_url == ""

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("STAKESPLIT_MAX_BUDGET", "500")
        monkeypatch.setenv("STAKESPLIT_MAX_STAKE", "50")
        s = Settings(_env_file=None)
        assert s.max_budget == 500
        assert s.max_stake == 50


class TestLimits:
    def test_from_settings(self, monkeypatch):
        from stakesplit import config

        monkeypatch.setattr(config.settings, "max_budget", 250)
        monkeypatch.setattr(config.settings, "min_stake", 10)
        limits = Limits.from_settings()
        assert limits.max_budget == 250
        assert limits.min_stake == 10
