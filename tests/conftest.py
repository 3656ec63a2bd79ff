"""Pytest configuration and fixtures for cpap-insight tests."""

import pytest


def pytest_configure(config):
    """Register custom test markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that do not require external dependencies"
    )
    config.addinivalue_line(
        "markers", "business_logic: Tests for core business logic and algorithms"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests combining multiple components"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take significant time (>5 seconds)"
    )


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the config file and log directory at a temporary directory."""
    config_dir = tmp_path / ".cpap_insight"
    monkeypatch.setattr("cpap_insight.config.DEFAULT_CONFIG_DIR", config_dir)
    monkeypatch.setattr("cpap_insight.logging_config.DEFAULT_LOG_DIR", config_dir / "logs")
    return config_dir
