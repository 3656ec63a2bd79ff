import json

import pytest

from click.testing import CliRunner


def pytest_collection_modifyitems(items):
    """Apply integration marker to all tests in this directory."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep CLI invocations from installing global log handlers."""
    monkeypatch.setattr("cpap_insight.logging_config._logging_configured", True)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def write_json(tmp_path):
    """Write a JSON document to a temp file and return its path as a string."""

    def _write(name, payload):
        path = tmp_path / name
        path.write_text(json.dumps(payload))
        return str(path)

    return _write
