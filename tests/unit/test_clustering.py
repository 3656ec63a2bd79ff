"""
Tests for respiratory event clustering.

Covers the three strategies, the dispatching engine, and finalization.
"""

import math

from datetime import timedelta

import numpy as np

import pytest

from pydantic import ValidationError

from cpap_insight.analysis.clustering import (
    Cluster,
    ClusterParams,
    cluster_events,
    clusters_to_rows,
    compute_cluster_severity,
    finalize_clusters,
    select_apnea_events,
)
from cpap_insight.analysis.clustering.bridged import (
    cluster_bridged,
    find_edge_segments,
    group_flow_limitation_runs,
)
from cpap_insight.analysis.clustering.finalize import EXPORT_COLUMNS
from cpap_insight.analysis.clustering.kmeans import kmeans_1d
from cpap_insight.constants import ClusterAlgorithm, EventKind
from tests.helpers.synthetic_data import (
    BASE_TIME,
    flat_readings,
    make_events,
    make_readings,
)


def _counts(clusters):
    return [c.count for c in clusters]


class TestBridgedClustering:
    """Test gap clustering with flow-limitation bridging."""

    params = ClusterParams(gap_sec=30, bridge_sec=90)

    def test_gap_splits_without_readings(self):
        events = make_events([(0, 20), (100, 20)])
        clusters = cluster_bridged(events, [], self.params)
        assert _counts(clusters) == [1, 1]

    def test_small_gap_joins(self):
        events = make_events([(0, 20), (45, 20), (80, 10)])
        clusters = cluster_bridged(events, [], self.params)
        assert _counts(clusters) == [3]

    def test_sustained_flow_limitation_bridges_gap(self):
        events = make_events([(0, 20), (100, 20)])
        readings = flat_readings(20, 100, 0.5)

        clusters = cluster_bridged(events, readings, self.params)

        assert _counts(clusters) == [2]
        assert clusters[0].peak_flg_level == pytest.approx(0.5)

    def test_dip_below_threshold_breaks_bridge(self):
        events = make_events([(0, 20), (100, 20)])
        readings = make_readings([(30, 0.5), (60, 0.05), (90, 0.5)])

        clusters = cluster_bridged(events, readings, self.params)

        assert _counts(clusters) == [1, 1]

    def test_gap_longer_than_bridge_not_bridged(self):
        events = make_events([(0, 10), (200, 10)])
        readings = flat_readings(10, 200, 0.9)

        clusters = cluster_bridged(events, readings, self.params)

        assert _counts(clusters) == [1, 1]

    def test_gap_measured_from_latest_end(self):
        # The long first event still covers the second, so the third event's
        # gap is measured from t=100 rather than t=30.
        events = make_events([(0, 100), (20, 10), (130, 10)])
        clusters = cluster_bridged(events, [], self.params)
        assert _counts(clusters) == [3]

    def test_density_over_event_window(self):
        events = make_events([(0, 30), (40, 20), (80, 40)])
        (cluster,) = cluster_bridged(events, [], self.params)

        assert cluster.density == pytest.approx(1.5)
        assert cluster.weighted_density == pytest.approx(45.0)
        assert cluster.total_event_duration_sec == 90
        assert math.isnan(cluster.peak_flg_level)

    def test_edge_segment_extends_start(self):
        events = make_events([(100, 20), (150, 20)])
        readings = flat_readings(60, 90, 0.8)

        (cluster,) = cluster_bridged(events, readings, ClusterParams())

        assert (cluster.start - BASE_TIME).total_seconds() == 60
        assert cluster.duration_sec == 110
        assert cluster.density == pytest.approx(2 / (70 / 60))

    def test_edge_segment_extends_end(self):
        events = make_events([(0, 20), (40, 20)])
        readings = flat_readings(70, 100, 0.8)

        (cluster,) = cluster_bridged(events, readings, ClusterParams())

        assert (cluster.end - BASE_TIME).total_seconds() == 100

    def test_short_edge_segment_ignored(self):
        events = make_events([(100, 20), (150, 20)])
        readings = flat_readings(80, 85, 0.8)

        (cluster,) = cluster_bridged(events, readings, ClusterParams())

        assert cluster.start == events[0].timestamp

    def test_empty_events(self):
        assert cluster_bridged([], flat_readings(0, 10, 1.0), self.params) == []


class TestFlowLimitationSegments:
    """Test run grouping and hysteresis segmentation."""

    def test_runs_split_on_spacing(self):
        readings = make_readings([(0, 0.5), (10, 0.6), (100, 0.7)])
        runs = group_flow_limitation_runs(readings, threshold=0.3, max_spacing_sec=30)

        assert [r.reading_count for r in runs] == [2, 1]
        assert runs[0].peak_level == pytest.approx(0.6)

    def test_runs_split_on_low_reading(self):
        readings = make_readings([(0, 0.5), (2, 0.1), (4, 0.5)])
        runs = group_flow_limitation_runs(readings, threshold=0.3, max_spacing_sec=30)
        assert len(runs) == 2

    def test_hysteresis_keeps_segment_open(self):
        params = ClusterParams(edge_enter=0.5, edge_exit=0.3, edge_min_duration_sec=0)
        readings = make_readings([(0, 0.6), (5, 0.4), (10, 0.35), (15, 0.2)])

        segments = find_edge_segments(readings, params)

        assert len(segments) == 1
        assert segments[0].duration_sec == 10

    def test_below_enter_never_opens(self):
        params = ClusterParams(edge_enter=0.5, edge_exit=0.3, edge_min_duration_sec=0)
        readings = make_readings([(0, 0.4), (5, 0.45)])
        assert find_edge_segments(readings, params) == []

    def test_exit_above_enter_rejected(self):
        with pytest.raises(ValidationError):
            ClusterParams(edge_enter=0.3, edge_exit=0.5)


class TestKMeans:
    """Test deterministic one-dimensional k-means."""

    offsets = [0, 10, 20, 1000, 1010, 1020, 5000, 5010, 5020]

    def _events(self):
        return make_events([(t, 5) for t in self.offsets])

    def test_separates_groups(self):
        result = cluster_events(
            self._events(), params=ClusterParams(algorithm="kmeans", k=3)
        )

        assert _counts(result.clusters) == [3, 3, 3]
        assert result.meta is not None
        assert result.meta.converged
        assert not result.meta.k_overspecified
        assert not result.meta.max_iterations_reached

    def test_deterministic(self):
        params = ClusterParams(algorithm="kmeans", k=3)
        first = cluster_events(self._events(), params=params)
        second = cluster_events(self._events(), params=params)

        assert [c.start for c in first.clusters] == [c.start for c in second.clusters]
        assert first.meta == second.meta

    def test_overspecified_flag(self):
        result = cluster_events(
            self._events(), params=ClusterParams(algorithm="kmeans", k=5)
        )
        assert result.meta.k_overspecified

    def test_k_larger_than_events(self):
        events = make_events([(0, 5), (500, 5), (900, 5)])
        result = cluster_events(events, params=ClusterParams(algorithm="kmeans", k=10))
        assert _counts(result.clusters) == [1, 1, 1]

    def test_iteration_cap_reported(self):
        points = np.array(self.offsets, dtype=float)
        _, meta = kmeans_1d(points, k=3, max_iterations=1)

        assert meta.iterations == 1
        assert not meta.converged
        assert meta.max_iterations_reached

    def test_wcss_zero_when_each_point_alone(self):
        _, meta = kmeans_1d(np.array([0.0, 100.0, 200.0]), k=3, max_iterations=10)
        assert meta.wcss == pytest.approx(0.0)


class TestAgglomerative:
    """Test single-linkage clustering on onset times."""

    def test_threshold_split(self):
        events = make_events([(0, 10), (50, 10), (500, 10)])
        params = ClusterParams(algorithm="agglomerative", linkage_threshold_sec=60)

        result = cluster_events(events, params=params)

        assert _counts(result.clusters) == [2, 1]
        assert result.meta is None

    def test_chaining(self):
        events = make_events([(0, 5), (50, 5), (100, 5), (150, 5)])
        params = ClusterParams(algorithm="agglomerative", linkage_threshold_sec=60)

        result = cluster_events(events, params=params)

        assert _counts(result.clusters) == [4]

    def test_single_event(self):
        events = make_events([(0, 10)])
        params = ClusterParams(algorithm="agglomerative")
        assert _counts(cluster_events(events, params=params).clusters) == [1]


class TestEngine:
    """Test the clustering entry point."""

    def test_unsorted_input_sorted(self):
        events = make_events([(100, 10), (0, 10), (50, 10)])
        result = cluster_events(events)

        (cluster,) = result.clusters
        assert [e.timestamp for e in cluster.events] == sorted(
            e.timestamp for e in events
        )

    def test_empty_input(self):
        result = cluster_events([], params=ClusterParams(algorithm="kmeans"))

        assert result.clusters == []
        assert result.meta is None

    def test_clusters_ordered_by_start(self):
        events = make_events([(0, 10), (1000, 10), (2000, 10)])
        result = cluster_events(events, params=ClusterParams(algorithm="kmeans", k=3))

        starts = [c.start for c in result.clusters]
        assert starts == sorted(starts)

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(ValidationError):
            ClusterParams(algorithm="spectral")

    def test_min_density_filter(self):
        events = make_events([(0, 30), (40, 20), (80, 40), (1000, 5), (1010, 5)])
        result = cluster_events(events, params=ClusterParams(min_density=2.0))

        # Only the tight pair at t=1000 reaches two events per minute
        assert _counts(result.clusters) == [2]

    def test_select_apnea_events(self):
        events = (
            make_events([(0, 10)], kind=EventKind.OBSTRUCTIVE)
            + make_events([(20, 10)], kind=EventKind.HYPOPNEA)
            + make_events([(40, 10)], kind=EventKind.CLEAR_AIRWAY)
        )

        selected = select_apnea_events(events)

        assert [e.kind for e in selected] == [
            EventKind.OBSTRUCTIVE,
            EventKind.CLEAR_AIRWAY,
        ]

    def test_params_not_modified(self):
        params = ClusterParams(algorithm=ClusterAlgorithm.BRIDGED)
        cluster_events(make_events([(0, 10)]), params=params)
        assert params == ClusterParams()


class TestFinalize:
    """Test cluster filtering and severity."""

    def _cluster(self, specs, **params):
        (cluster,) = cluster_bridged(make_events(specs), [], ClusterParams(**params))
        return cluster

    def test_reference_cluster_survives(self):
        raw = self._cluster([(0, 30), (40, 25), (80, 35)])

        (final,) = finalize_clusters([raw])

        assert final.count == 3
        assert final.severity == pytest.approx(90 / 60 + 3 / 5 + 115 / 120)
        assert raw.severity == 0.0

    def test_mixed_batch_keeps_only_qualifying_cluster(self):
        def raw(span_sec, specs):
            return Cluster(
                start=BASE_TIME,
                end=BASE_TIME + timedelta(seconds=span_sec),
                duration_sec=span_sec,
                count=len(specs),
                events=make_events(specs),
            )

        batch = [
            raw(200, [(0, 30), (40, 25), (80, 35)]),
            raw(50, [(0, 10), (20, 5)]),
            raw(400, [(0, 10), (200, 10), (380, 10)]),
        ]
        params = ClusterParams(min_count=3, min_total_sec=60, max_cluster_sec=300)

        (final,) = finalize_clusters(batch, params)

        assert final.count == 3
        assert final.duration_sec == 200
        assert final.severity > 0

    def test_min_count_filter(self):
        raw = self._cluster([(0, 30), (40, 25), (80, 35)])
        assert finalize_clusters([raw], ClusterParams(min_count=4)) == []

    def test_min_total_filter(self):
        raw = self._cluster([(0, 10), (20, 10), (40, 10)])
        assert finalize_clusters([raw], ClusterParams(min_total_sec=60)) == []

    def test_max_span_filter(self):
        raw = self._cluster([(0, 30), (180, 30), (370, 30)], gap_sec=200)

        assert raw.duration_sec == 400
        assert finalize_clusters([raw], ClusterParams(max_cluster_sec=300)) == []

    def test_none_and_empty(self):
        assert finalize_clusters(None) == []
        assert finalize_clusters([]) == []

    def test_severity_grows_with_events(self):
        small = self._cluster([(0, 20), (30, 20), (60, 20)])
        large = self._cluster([(0, 20), (30, 20), (60, 20), (90, 20)])
        assert compute_cluster_severity(large) > compute_cluster_severity(small)

    def test_rows(self):
        final = finalize_clusters([self._cluster([(0, 30), (40, 25), (80, 35)])])

        (row,) = clusters_to_rows(final)

        assert list(row) == EXPORT_COLUMNS
        assert row["index"] == 0
        assert row["start"] == BASE_TIME.isoformat()
        assert row["count"] == 3
