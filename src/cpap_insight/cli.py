"""
Command-line interface for cpap-insight.

Commands read already-parsed JSON documents (events, nightly series, night
records) and print JSON results, so the analysis core stays free of file
formats.
"""

import glob
import json
import logging
import sys

from pathlib import Path
from typing import Any

import click

from pydantic import TypeAdapter, ValidationError

from cpap_insight import __version__
from cpap_insight.analysis.clustering import (
    DEFAULT_PRESET,
    FALSE_NEGATIVE_PRESETS,
    cluster_events,
    clusters_to_rows,
    detect_false_negatives,
    finalize_clusters,
    load_cluster_params,
    select_apnea_events,
)
from cpap_insight.analysis.statistics import (
    compute_adherence_streaks,
    compute_ahi_trends,
    compute_apnea_event_stats,
    compute_autocorrelation,
    compute_epap_trends,
    compute_partial_autocorrelation,
    compute_rolling_windows,
    detect_change_points,
    detect_usage_breakpoints,
    km_survival,
    mann_whitney_u_test,
    rolling_means,
    stl_decompose,
    summarize_values,
)
from cpap_insight.analysis.sync import (
    align_nights,
    analyze_therapy_effectiveness,
    assess_data_quality,
    compute_cross_sensor_correlations,
    impute_missing_values,
)
from cpap_insight.config import (
    get_config_path,
    get_section,
    load_config,
    parse_config_value,
    set_config_value,
    unset_config_value,
)
from cpap_insight.constants import ClusterAlgorithm, ImputationMethod
from cpap_insight.constants import StatisticsConstants as SC
from cpap_insight.constants import TherapyConstants as TC
from cpap_insight.logging_config import get_log_path, setup_logging
from cpap_insight.models.events import FlowLimitationReading, RespiratoryEvent
from cpap_insight.models.nights import DeviceNight, WearableNight
from cpap_insight.models.series import Series

logger = logging.getLogger(__name__)

_EVENTS = TypeAdapter(list[RespiratoryEvent])
_READINGS = TypeAdapter(list[FlowLimitationReading])
_DEVICE_NIGHTS = TypeAdapter(list[DeviceNight])
_WEARABLE_NIGHTS = TypeAdapter(list[WearableNight])
_NUMBERS = TypeAdapter(list[float | None])
_ANY = TypeAdapter(Any)


def _read_json(path: str) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise click.ClickException(f"Cannot read {path}: {e}") from e


def _echo_json(payload: Any) -> None:
    click.echo(json.dumps(_ANY.dump_python(payload, mode="json"), indent=2))


def _load_events(path: str) -> tuple[list[RespiratoryEvent], list[FlowLimitationReading]]:
    """Events file: a list of events, or {"events": [...], "flow_limitation": [...]}."""
    data = _read_json(path)
    if isinstance(data, list):
        data = {"events": data}
    try:
        events = _EVENTS.validate_python(data.get("events", []))
        readings = _READINGS.validate_python(data.get("flow_limitation", []))
    except ValidationError as e:
        raise click.ClickException(f"Invalid events file {path}:\n{e}") from e
    return events, readings


def _load_series(path: str) -> Series:
    """Series file: {"name": ..., "samples": [{"date", "value"}]} or a list of samples."""
    data = _read_json(path)
    if isinstance(data, list):
        data = {"samples": data}
    try:
        return Series.model_validate(data)
    except ValidationError as e:
        raise click.ClickException(f"Invalid series file {path}:\n{e}") from e


def _load_numbers(path: str) -> list[float]:
    try:
        values = _NUMBERS.validate_python(_read_json(path))
    except ValidationError as e:
        raise click.ClickException(f"Expected a JSON array of numbers in {path}") from e
    return [float("nan") if v is None else v for v in values]


@click.group()
@click.version_option(__version__, prog_name="cpap-insight")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool) -> None:
    """cpap-insight: CPAP trend statistics and event clustering"""
    setup_logging(verbose=verbose, console_format="%(levelname)s: %(message)s")


@cli.command()
@click.argument("events_file", type=click.Path(exists=True))
@click.option(
    "--algorithm",
    type=click.Choice([a.value for a in ClusterAlgorithm]),
    help="Clustering algorithm (default from config)",
)
@click.option("--gap-sec", type=float, help="Maximum gap between clustered events")
@click.option("--bridge-threshold", type=float, help="Flow-limitation bridge level")
@click.option("--bridge-sec", type=float, help="Longest bridgeable gap")
@click.option("--k", "k", type=int, help="Number of k-means groups")
@click.option("--linkage-threshold-sec", type=float, help="Agglomerative merge distance")
@click.option("--min-count", type=int, help="Minimum events per cluster")
@click.option("--min-total-sec", type=float, help="Minimum apnea seconds per cluster")
@click.option("--max-cluster-sec", type=float, help="Maximum cluster span")
@click.option("--raw", is_flag=True, help="Skip finalization filters")
@click.option("--rows", is_flag=True, help="Print flat export rows instead of clusters")
def cluster(events_file: str, raw: bool, rows: bool, **overrides: Any) -> None:
    """Cluster apnea events from EVENTS_FILE."""
    events, readings = _load_events(events_file)
    try:
        params = load_cluster_params(overrides)
    except ValidationError as e:
        raise click.ClickException(f"Invalid clustering parameters:\n{e}") from e

    result = cluster_events(select_apnea_events(events), readings, params)
    clusters = result.clusters if raw else finalize_clusters(result.clusters, params)

    if rows:
        _echo_json(clusters_to_rows(clusters))
        return
    _echo_json(
        {
            "algorithm": result.algorithm.value,
            "meta": result.meta,
            "clusters": clusters,
        }
    )


@cli.command("false-negatives")
@click.argument("events_file", type=click.Path(exists=True))
@click.option(
    "--preset",
    type=click.Choice(list(FALSE_NEGATIVE_PRESETS.keys())),
    default=None,
    help=f"Threshold preset (default: {DEFAULT_PRESET})",
)
def false_negatives(events_file: str, preset: str | None) -> None:
    """Find sustained flow limitation without coded events."""
    events, readings = _load_events(events_file)
    if preset is None:
        preset = get_section("analysis").get("false_negative_preset", DEFAULT_PRESET)
    try:
        candidates = detect_false_negatives(
            events, readings, preset, load_cluster_params()
        )
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    _echo_json(candidates)


@cli.command()
@click.argument("series_file", type=click.Path(exists=True))
@click.option("--max-lag", type=int, help="Highest ACF/PACF lag")
@click.option("--season-length", type=int, help="Seasonal period in nights")
@click.option("--penalty", type=float, help="Change-point penalty")
def trend(
    series_file: str,
    max_lag: int | None,
    season_length: int | None,
    penalty: float | None,
) -> None:
    """Autocorrelation, decomposition, and change points for a nightly series."""
    series = _load_series(series_file)
    analysis = get_section("analysis")
    max_lag = (
        max_lag if max_lag is not None else analysis.get("max_lag", SC.DEFAULT_MAX_LAG)
    )
    season_length = (
        season_length
        if season_length is not None
        else analysis.get("season_length", SC.STL_SEASON_LENGTH)
    )
    penalty = (
        penalty
        if penalty is not None
        else analysis.get("changepoint_penalty", SC.CHANGEPOINT_PENALTY)
    )

    values = series.values()
    dates = series.dates()
    try:
        short_window, long_window = SC.ROLLING_WINDOWS
        rolling = compute_rolling_windows(series)
        payload = {
            "name": series.name,
            "summary": summarize_values(values),
            "acf": compute_autocorrelation(values, max_lag),
            "pacf": compute_partial_autocorrelation(values, max_lag),
            "decomposition": stl_decompose(values, season_length),
            "change_points": detect_change_points(values, dates, penalty),
            "breakpoints": detect_usage_breakpoints(
                rolling_means(rolling[short_window]),
                rolling_means(rolling[long_window]),
                dates,
            ),
            "streaks": compute_adherence_streaks(series),
        }
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    _echo_json(payload)


@cli.command()
@click.argument("device_file", type=click.Path(exists=True))
@click.option(
    "--events",
    "events_file",
    type=click.Path(exists=True),
    help="Events file for apnea duration statistics",
)
@click.option("--window", type=int, help="Nights in the early and recent windows")
def therapy(device_file: str, events_file: str | None, window: int | None) -> None:
    """AHI and EPAP trend summaries, plus apnea event statistics."""
    try:
        nights = _DEVICE_NIGHTS.validate_python(_read_json(device_file))
    except ValidationError as e:
        raise click.ClickException(f"Invalid night records:\n{e}") from e
    window = (
        window
        if window is not None
        else get_section("analysis").get("trend_window_nights", TC.TREND_WINDOW_NIGHTS)
    )
    if window < 1:
        raise click.ClickException(f"--window must be at least 1, got {window}")

    payload: dict[str, Any] = {
        "ahi": compute_ahi_trends(nights, window),
        "epap": compute_epap_trends(nights, window),
    }
    if events_file:
        events, _ = _load_events(events_file)
        payload["apnea_events"] = compute_apnea_event_stats(events)
    _echo_json(payload)


@cli.command()
@click.argument("a_file", type=click.Path(exists=True))
@click.argument("b_file", type=click.Path(exists=True))
def compare(a_file: str, b_file: str) -> None:
    """Mann-Whitney U test between two samples (JSON arrays)."""
    _echo_json(mann_whitney_u_test(_load_numbers(a_file), _load_numbers(b_file)))


@cli.command()
@click.argument("durations_file", type=click.Path(exists=True))
def survival(durations_file: str) -> None:
    """Kaplan-Meier curve for a JSON array of durations."""
    curve = km_survival(_load_numbers(durations_file))
    _echo_json({"curve": curve, "median": curve.median_survival_time()})


@cli.command()
@click.argument("device_file", type=click.Path(exists=True))
@click.argument("wearable_file", type=click.Path(exists=True))
@click.option(
    "--impute",
    type=click.Choice([m.value for m in ImputationMethod]),
    help="Fill missing wearable fields before correlating",
)
def align(device_file: str, wearable_file: str, impute: str | None) -> None:
    """Align device nights with wearable nights and correlate them."""
    try:
        devices = _DEVICE_NIGHTS.validate_python(_read_json(device_file))
        wearables = _WEARABLE_NIGHTS.validate_python(_read_json(wearable_file))
    except ValidationError as e:
        raise click.ClickException(f"Invalid night records:\n{e}") from e

    result = align_nights(devices, wearables)
    nights = result.aligned
    if impute:
        nights = impute_missing_values(nights, impute)

    _echo_json(
        {
            "statistics": result.statistics,
            "aligned": nights,
            "invalid": result.invalid,
            "unmatched_device": result.unmatched_device,
            "unmatched_wearable": result.unmatched_wearable,
            "correlations": compute_cross_sensor_correlations(nights),
            "data_quality": assess_data_quality(result.aligned + result.invalid),
            "effectiveness": analyze_therapy_effectiveness(nights),
        }
    )


@cli.group()
def config() -> None:
    """Configuration management commands."""
    pass


@config.command("show")
def show_config_cmd() -> None:
    """Show all configuration settings."""
    config_path = get_config_path()
    if not config_path.exists():
        click.echo(f"No config file: {config_path}")
        return

    click.echo(f"Config file: {config_path}\n")
    config_data = load_config()
    if not config_data:
        click.echo("Configuration is empty.")
        return

    click.echo("Settings:")
    for section, values in config_data.items():
        click.echo(f"  [{section}]")
        if isinstance(values, dict):
            for key, value in values.items():
                click.echo(f"    {key} = {value!r}")


@config.command("set")
@click.argument("key")
@click.argument("value")
def set_config_cmd(key: str, value: str) -> None:
    """Set KEY (section.name) to VALUE."""
    parsed = parse_config_value(value)
    try:
        set_config_value(key, parsed)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if key.startswith("clustering."):
        try:
            load_cluster_params()
        except ValidationError as e:
            unset_config_value(key)
            click.echo(f"Error: invalid clustering setting, not saved:\n{e}", err=True)
            sys.exit(1)

    click.echo(f"✓ {key} = {parsed!r}")
    click.echo(f"  Config: {get_config_path()}")


@config.command("unset")
@click.argument("key")
def unset_config_cmd(key: str) -> None:
    """Remove KEY (section.name) from the config file."""
    try:
        removed = unset_config_value(key)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    if removed:
        click.echo(f"✓ Removed {key}")
    else:
        click.echo(f"{key} was not set.")


@cli.group()
def logs() -> None:
    """Log file management commands."""
    pass


@logs.command("path")
def logs_path() -> None:
    """Show log file location."""
    log_path = get_log_path()
    click.echo(f"Log file: {log_path}")

    if log_path.exists():
        size_mb = log_path.stat().st_size / (1024 * 1024)
        click.echo(f"Size: {size_mb:.2f} MB")

        backup_files = sorted(glob.glob(str(log_path.parent / f"{log_path.name}.*")))
        if backup_files:
            click.echo(f"Backup files: {len(backup_files)}")
    else:
        click.echo("(File does not exist yet)")


@logs.command("show")
@click.option("--lines", "-n", type=int, default=50, help="Number of lines to show")
def logs_show(lines: int) -> None:
    """Show recent log entries."""
    log_path = get_log_path()

    if not log_path.exists():
        click.echo("No log file found", err=True)
        sys.exit(1)

    try:
        with open(log_path, encoding="utf-8") as f:
            all_lines = f.readlines()
    except OSError as e:
        click.echo(f"Error reading log file: {e}", err=True)
        sys.exit(1)

    for line in all_lines[-lines:]:
        click.echo(line.rstrip())


@logs.command("clear")
@click.confirmation_option(prompt="Are you sure you want to clear all log files?")
def logs_clear() -> None:
    """Clear all log files."""
    log_path = get_log_path()
    log_files = [log_path] + [
        Path(f) for f in glob.glob(str(log_path.parent / f"{log_path.name}.*"))
    ]

    removed_count = 0
    for log_file in log_files:
        if log_file.exists():
            try:
                log_file.unlink()
                removed_count += 1
            except OSError as e:
                click.echo(f"Failed to remove {log_file}: {e}", err=True)

    if removed_count > 0:
        click.echo(f"Removed {removed_count} log file(s)")
    else:
        click.echo("No log files to remove")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
