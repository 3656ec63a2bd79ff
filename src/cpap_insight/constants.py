"""
Constants and default thresholds for CPAP trend and event analysis.

Threshold values carry physiological meaning; the CLI and config layer read
them from here and pass them into the analysis routines as explicit
configuration records.
"""

from enum import Enum
from pathlib import Path

# ============================================================================
# Event Kinds
# ============================================================================


class EventKind(str, Enum):
    """Closed set of respiratory event kinds accepted by the clustering engine."""

    OBSTRUCTIVE = "Obstructive"
    CLEAR_AIRWAY = "ClearAirway"
    HYPOPNEA = "Hypopnea"
    FLOW_LIMITATION = "FlowLimitation"
    OTHER = "Other"


# Kinds that count as apnea activity for clustering
APNEA_EVENT_KINDS = frozenset({EventKind.OBSTRUCTIVE, EventKind.CLEAR_AIRWAY})

# Kinds that count as a coded event when looking for missed apneas
SCORED_EVENT_KINDS = APNEA_EVENT_KINDS | {EventKind.HYPOPNEA}


class ClusterAlgorithm(str, Enum):
    """Available event clustering strategies."""

    BRIDGED = "bridged"
    KMEANS = "kmeans"
    AGGLOMERATIVE = "agglomerative"


class ImputationMethod(str, Enum):
    """Imputation strategies for missing wearable/device fields."""

    REGRESSION = "regression"
    MEAN = "mean"


class MatchType(str, Enum):
    """How a device night was paired with a wearable night."""

    EXACT = "exact"
    EXACT_MULTIPLE = "exact_multiple"
    DELAYED = "delayed"


# ============================================================================
# Therapy Thresholds
# ============================================================================

COMPLIANCE_MIN_HOURS = 4  # Minimum hours per night for compliance
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
MINUTES_PER_HOUR = 60


# ============================================================================
# Analysis Algorithm Constants
# ============================================================================


class StatisticsConstants:
    """Constants for trend statistics (autocorrelation.py, decomposition.py)."""

    DEFAULT_MAX_LAG = 30
    MAX_LAG_INPUT = 120
    MAX_RECOMMENDED_LAG = 40
    RECOMMENDED_LAG_DIVISOR = 3

    STL_SEASON_LENGTH = 7
    STL_ITERATIONS = 2

    CHANGEPOINT_PENALTY = 10.0
    USAGE_CHANGEPOINT_PENALTY = 8.0
    AHI_CHANGEPOINT_PENALTY = 6.0
    CHANGEPOINT_MIN_SEGMENT = 1

    ROLLING_WINDOWS = (7, 30)
    BREAKPOINT_MIN_DELTA = 0.75

    CONFIDENCE_Z = 1.96
    PIVOT_EPSILON = 1e-12


class HypothesisTestConstants:
    """Constants for the Mann-Whitney test engine (hypothesis.py)."""

    EXACT_MAX_N = 28
    CONTINUITY_CORRECTION = 0.5


class SmoothingConstants:
    """Constants for scatter smoothers (smoothing.py)."""

    LOESS_BANDWIDTH = 0.3
    LOESS_MIN_NEIGHBORS = 2
    RUNNING_QUANTILE_K = 25
    RUNNING_QUANTILE_MIN_NEIGHBORS = 3


class TherapyConstants:
    """Constants for therapy KPI summaries (therapy.py, effectiveness.py)."""

    TREND_WINDOW_NIGHTS = 30
    AHI_ELEVATED = 5.0
    AHI_SEVERE = 30.0
    EPAP_SPLIT_CMH2O = 7.0
    LONG_EVENT_SEC = (30.0, 60.0)
    OUTLIER_IQR_FACTOR = 1.5

    LINEAR_TREND_MIN_SAMPLES = 3
    LINEAR_TREND_STABLE_SLOPE = 0.1
    OPTIMAL_SLEEP_EFFICIENCY = 85.0
    HYPOXEMIA_SPO2 = 90.0
    SPO2_SCORE_FLOOR = 85.0
    SPO2_SCORE_RANGE = 10.0
    SCORE_COMPONENT_POINTS = 25.0
    SCORE_COMPONENTS = 4


class ClusteringConstants:
    """
    Default parameters for respiratory event clustering.

    Gap and span values are in seconds, densities in events per minute.
    """

    GAP_SEC = 120.0
    BRIDGE_THRESHOLD = 0.1
    BRIDGE_SEC = 60.0
    K = 3
    LINKAGE_THRESHOLD_SEC = 120.0

    MIN_COUNT = 3
    MIN_TOTAL_SEC = 60.0
    MAX_CLUSTER_SEC = 600.0
    MIN_DENSITY = 0.0

    EDGE_ENTER_THRESHOLD = 0.5
    EDGE_EXIT_FRACTION = 0.7
    EDGE_MIN_DURATION_SEC = 10.0

    KMEANS_MAX_ITERATIONS = 100
    KMEANS_OVERSPECIFIED_RATIO = 3

    CLUSTER_DURATION_ALERT_SEC = 120.0
    CLUSTER_COUNT_ALERT = 5


class FalseNegativeConstants:
    """Preset thresholds for flow-limitation runs without coded apneas."""

    STRICT_MIN_CONFIDENCE = 0.98
    STRICT_MIN_DURATION_SEC = 120.0
    STRICT_FL_THRESHOLD = 0.9

    BALANCED_MIN_CONFIDENCE = 0.95
    BALANCED_MIN_DURATION_SEC = 60.0
    BALANCED_FL_THRESHOLD = 0.1

    LENIENT_MIN_CONFIDENCE = 0.85
    LENIENT_MIN_DURATION_SEC = 45.0
    LENIENT_FL_THRESHOLD = 0.5
    LENIENT_BRIDGE_SCALE = 0.8

    MAX_DURATION_SEC = 600.0
    EVENT_EXCLUSION_WINDOW_SEC = 5.0
    DEFAULT_PRESET = "balanced"


class AlignmentConstants:
    """Constants for pairing device nights with wearable nights (alignment.py)."""

    SLEEP_DATE_CUTOFF_HOUR = 12
    MAX_SYNC_DELAY_HOURS = 48
    MIN_OVERLAP_HOURS = 4.0
    MAX_DURATION_DIFF_HOURS = 2.0
    MIN_COMPLETE_RECORDS = 3

    HR_PLAUSIBLE_MIN = 30.0
    HR_PLAUSIBLE_MAX = 120.0
    HRV_PLAUSIBLE_MIN = 1.0


class CorrelationConstants:
    """Constants for cross-sensor correlation and causality tests (correlation.py)."""

    SPEARMAN_MIN_SAMPLES = 3
    CROSS_CORRELATION_MAX_LAG = 30
    GRANGER_MAX_LAG = 7
    GRANGER_MIN_SAMPLES_FACTOR = 2
    GRANGER_MIN_SAMPLES_OFFSET = 10
    SIGNIFICANCE_ALPHA = 0.05
    PERFECT_CORRELATION = 0.999999999

    EFFECT_SMALL = 0.1
    EFFECT_MEDIUM = 0.3
    EFFECT_LARGE = 0.5


# ============================================================================
# Application Defaults
# ============================================================================

DEFAULT_CONFIG_DIR = Path.home() / ".cpap_insight"
DEFAULT_CONFIG_FILE = "config.toml"

DEFAULT_LOG_DIR = DEFAULT_CONFIG_DIR / "logs"
DEFAULT_LOG_FILE = "cpap_insight.log"
DEFAULT_LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_LOG_BACKUP_COUNT = 5
