"""Tests for configuration loading."""

import pytest
from pathlib import Path

from shipwatch.config import PollerConfig


@pytest.fixture
def clean_dir(tmp_path, monkeypatch):
    """Run from an empty directory so no stray .env file is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestFromEnv:
    """Tests for PollerConfig.from_env."""

    def test_defaults(self, clean_dir, monkeypatch):
        for name in ("POLL_BATCH_SIZE", "STORE_BACKEND", "POLL_FREIGHT_INTERVAL_HOURS", "POLL_ACTIVE_STATUSES"):
            monkeypatch.delenv(name, raising=False)

        config = PollerConfig.from_env()

        assert config.batch_size == 10
        assert config.store_backend == "json"
        assert config.freight_interval_hours == 12
        assert config.poll_floor_minutes == 15
        assert "in_transit" in config.active_statuses
        assert "out_for_delivery" in config.active_statuses
        assert "delivered" not in config.active_statuses

    def test_environment_overrides(self, clean_dir, monkeypatch):
        monkeypatch.setenv("POLL_BATCH_SIZE", "25")
        monkeypatch.setenv("STORE_BACKEND", "HTTP")
        monkeypatch.setenv("BACKEND_API_URL", "https://backend.example.com")
        monkeypatch.setenv("POLL_ACTIVE_STATUSES", "booked, in_transit")
        monkeypatch.setenv("ESHIPPLUS_HOST", "https://eship.example.com")
        monkeypatch.setenv("DATA_DIR", "state")

        config = PollerConfig.from_env()

        assert config.batch_size == 25
        assert config.store_backend == "http"
        assert config.backend_api_url == "https://backend.example.com"
        assert config.active_statuses == ["booked", "in_transit"]
        assert config.eshipplus_host == "https://eship.example.com"
        assert config.data_dir == Path("state")

    def test_env_file(self, clean_dir, monkeypatch):
        # Register the variable so monkeypatch removes what load_dotenv sets
        monkeypatch.setenv("POLL_SWEEP_BUDGET_SECONDS", "0")
        monkeypatch.delenv("POLL_SWEEP_BUDGET_SECONDS")
        env_file = clean_dir / "poller.env"
        env_file.write_text("POLL_SWEEP_BUDGET_SECONDS=300\n")

        config = PollerConfig.from_env(str(env_file))

        assert config.sweep_budget_seconds == 300

    def test_ensure_directories(self, clean_dir):
        config = PollerConfig(data_dir=clean_dir / "data", log_file=str(clean_dir / "logs" / "poller.log"))

        config.ensure_directories()

        assert (clean_dir / "data").is_dir()
        assert (clean_dir / "logs").is_dir()


class TestValidate:
    """Tests for PollerConfig.validate."""

    def test_missing_carriers_are_warnings(self):
        problems = PollerConfig(store_backend="memory").validate()

        assert problems
        assert all(p.startswith("Warning:") for p in problems)

    def test_configured(self):
        config = PollerConfig(
            store_backend="memory",
            eshipplus_host="https://eship.example.com",
            polaris_host="https://polaris.example.com",
        )
        assert config.validate() == []

    def test_errors(self):
        config = PollerConfig(store_backend="http", batch_size=0, sweep_budget_seconds=0)
        errors = [p for p in config.validate() if not p.startswith("Warning:")]

        assert "BACKEND_API_URL is required for the http store" in errors
        assert "POLL_BATCH_SIZE must be at least 1" in errors
        assert "POLL_SWEEP_BUDGET_SECONDS must be positive" in errors

    def test_unknown_backend(self):
        errors = PollerConfig(store_backend="mongo").validate()
        assert any(e.startswith("STORE_BACKEND") for e in errors)
