"""
Tests for CLI commands.

These tests run each command end to end through Click's test runner:
- cluster with config layering and CLI overrides
- false-negatives, trend, compare, survival, align, therapy
- config show/set/unset and logs path
"""

import json

from datetime import timedelta

import pytest

from cpap_insight.cli import cli
from tests.helpers.synthetic_data import BASE_DATE, BASE_TIME, weekly_usage


def _event(offset, duration, kind="Obstructive"):
    return {
        "timestamp": (BASE_TIME + timedelta(seconds=offset)).isoformat(),
        "kind": kind,
        "duration_sec": duration,
    }


def _reading(offset, level):
    return {
        "timestamp": (BASE_TIME + timedelta(seconds=offset)).isoformat(),
        "level": level,
    }


@pytest.fixture
def events_file(write_json):
    return write_json(
        "events.json", [_event(0, 30), _event(40, 25), _event(80, 35)]
    )


class TestClusterCommand:
    """Test the cluster command."""

    def test_default_cluster(self, cli_runner, isolated_config, events_file):
        result = cli_runner.invoke(cli, ["cluster", events_file])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["algorithm"] == "bridged"
        (cluster,) = payload["clusters"]
        assert cluster["count"] == 3
        assert cluster["severity"] > 0

    def test_override_filters_cluster(self, cli_runner, isolated_config, events_file):
        result = cli_runner.invoke(
            cli, ["cluster", events_file, "--max-cluster-sec", "100"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["clusters"] == []

    def test_rows_output(self, cli_runner, isolated_config, events_file):
        result = cli_runner.invoke(cli, ["cluster", events_file, "--rows"])

        assert result.exit_code == 0, result.output
        (row,) = json.loads(result.stdout)
        assert row["index"] == 0
        assert row["count"] == 3

    def test_kmeans_meta(self, cli_runner, isolated_config, events_file):
        result = cli_runner.invoke(
            cli, ["cluster", events_file, "--algorithm", "kmeans", "--k", "1"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["meta"]["converged"] is True

    def test_config_value_applies(self, cli_runner, isolated_config, events_file):
        cli_runner.invoke(cli, ["config", "set", "clustering.gap_sec", "10"])

        result = cli_runner.invoke(cli, ["cluster", events_file, "--raw"])

        assert result.exit_code == 0, result.output
        counts = [c["count"] for c in json.loads(result.stdout)["clusters"]]
        assert counts == [2, 1]

    def test_invalid_override(self, cli_runner, isolated_config, events_file):
        result = cli_runner.invoke(cli, ["cluster", events_file, "--k", "0"])
        assert result.exit_code != 0

    def test_invalid_events_file(self, cli_runner, isolated_config, write_json):
        path = write_json("bad.json", [{"timestamp": "x", "kind": "Snore"}])

        result = cli_runner.invoke(cli, ["cluster", path])

        assert result.exit_code != 0
        assert "Invalid events file" in result.output


class TestAnalysisCommands:
    """Test the analysis commands that read nightly data."""

    def test_false_negatives(self, cli_runner, isolated_config, write_json):
        path = write_json(
            "fl.json",
            {"events": [], "flow_limitation": [_reading(0, 1.0), _reading(60, 1.0)]},
        )

        result = cli_runner.invoke(cli, ["false-negatives", path])

        assert result.exit_code == 0, result.output
        (candidate,) = json.loads(result.stdout)
        assert candidate["preset"] == "balanced"
        assert candidate["duration_sec"] == 60

    def test_false_negatives_strict(self, cli_runner, isolated_config, write_json):
        path = write_json(
            "fl.json",
            {"events": [], "flow_limitation": [_reading(0, 1.0), _reading(60, 1.0)]},
        )

        result = cli_runner.invoke(cli, ["false-negatives", path, "--preset", "strict"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == []

    def test_trend(self, cli_runner, isolated_config, write_json):
        values = weekly_usage(weeks=8, noise=0.3)
        samples = [
            {"date": (BASE_DATE + timedelta(days=i)).isoformat(), "value": float(v)}
            for i, v in enumerate(values)
        ]
        path = write_json("usage.json", {"name": "usage_hours", "samples": samples})

        result = cli_runner.invoke(cli, ["trend", path, "--max-lag", "14"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["name"] == "usage_hours"
        assert payload["summary"]["count"] == 56
        assert len(payload["acf"]["values"]) == 15
        assert len(payload["decomposition"]["trend"]) == 56
        assert "streaks" in payload

    def test_trend_bad_lag(self, cli_runner, isolated_config, write_json):
        path = write_json("usage.json", [{"date": "2025-03-01", "value": 7.0}])

        result = cli_runner.invoke(cli, ["trend", path, "--max-lag", "500"])

        assert result.exit_code != 0

    def test_compare(self, cli_runner, isolated_config, write_json):
        a = write_json("a.json", [1, 2])
        b = write_json("b.json", [3, 4])

        result = cli_runner.invoke(cli, ["compare", a, b])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["method"] == "exact"
        assert payload["p"] == pytest.approx(1 / 3)

    def test_survival(self, cli_runner, isolated_config, write_json):
        path = write_json("durations.json", [1, 2, 2, 3])

        result = cli_runner.invoke(cli, ["survival", path])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["median"] == 2.0
        assert payload["curve"]["survival"] == pytest.approx([0.75, 0.25, 0.0])

    def test_align(self, cli_runner, isolated_config, write_json):
        devices = write_json(
            "device.json",
            [{"session_start": BASE_TIME.isoformat(), "usage_hours": 7.0, "ahi": 2.5}],
        )
        wearables = write_json(
            "wearable.json",
            [{"date": BASE_DATE.isoformat(), "minutes_asleep": 410, "resting_hr": 57}],
        )

        result = cli_runner.invoke(cli, ["align", devices, wearables])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["statistics"]["aligned_count"] == 1
        assert payload["aligned"][0]["match_type"] == "exact"
        assert len(payload["correlations"]) == 6
        assert payload["data_quality"]["valid_records"] == 1
        assert payload["effectiveness"]["ahi_control"]["controlled_nights"] == 1

    def test_therapy(self, cli_runner, isolated_config, write_json):
        nights = [
            {
                "session_start": (BASE_TIME + timedelta(days=i)).isoformat(),
                "ahi": float(i),
                "median_epap": 6.0 + i,
            }
            for i in range(4)
        ]
        devices = write_json("device.json", nights)
        events = write_json("events.json", [_event(0, 30), _event(60, 70)])

        result = cli_runner.invoke(
            cli, ["therapy", devices, "--events", events, "--window", "2"]
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["ahi"]["first_window_mean"] == pytest.approx(0.5)
        assert payload["ahi"]["last_window_mean"] == pytest.approx(2.5)
        assert payload["epap"]["low_ahis"] == [0.0]
        assert payload["apnea_events"]["total_events"] == 2
        assert payload["apnea_events"]["count_over_60"] == 1

    def test_therapy_without_events(self, cli_runner, isolated_config, write_json):
        devices = write_json(
            "device.json", [{"session_start": BASE_TIME.isoformat(), "ahi": 1.0}]
        )

        result = cli_runner.invoke(cli, ["therapy", devices])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["ahi"]["window_nights"] == 30
        assert "apnea_events" not in payload

    def test_therapy_bad_window(self, cli_runner, isolated_config, write_json):
        devices = write_json("device.json", [])

        result = cli_runner.invoke(cli, ["therapy", devices, "--window", "0"])

        assert result.exit_code != 0



class TestConfigCommands:
    """Test config and logs management."""

    def test_set_show_unset(self, cli_runner, isolated_config):
        result = cli_runner.invoke(cli, ["config", "set", "clustering.gap_sec", "90"])
        assert result.exit_code == 0, result.output

        result = cli_runner.invoke(cli, ["config", "show"])
        assert "[clustering]" in result.output
        assert "gap_sec = 90" in result.output

        result = cli_runner.invoke(cli, ["config", "unset", "clustering.gap_sec"])
        assert "Removed clustering.gap_sec" in result.output

        result = cli_runner.invoke(cli, ["config", "show"])
        assert "No config file" in result.output

    def test_invalid_clustering_value_reverted(self, cli_runner, isolated_config):
        result = cli_runner.invoke(cli, ["config", "set", "clustering.k", "0"])

        assert result.exit_code == 1
        assert not (isolated_config / "config.toml").exists()

    def test_bad_key(self, cli_runner, isolated_config):
        result = cli_runner.invoke(cli, ["config", "set", "gap_sec", "10"])
        assert result.exit_code == 1

    def test_logs_path(self, cli_runner, isolated_config):
        result = cli_runner.invoke(cli, ["logs", "path"])

        assert result.exit_code == 0
        assert "Log file:" in result.output
        assert "does not exist yet" in result.output

    def test_version(self, cli_runner):
        result = cli_runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "cpap-insight" in result.output
