"""
cpap-insight: trend statistics and event clustering for CPAP therapy data.

Analyzes nightly series (usage, AHI, leak) and per-event respiratory
records, and correlates device nights with wearable sleep data.
"""

__all__ = ["__version__"]

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _get_version

try:
    __version__ = _get_version("cpap-insight")
except PackageNotFoundError:
    __version__ = "dev"
