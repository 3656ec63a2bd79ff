"""
Typed nightly series used as input to the trend statistics.

Missing values are represented as NaN inside a Sample, never as a sentinel.
`None` supplied at the ingestion boundary is converted to NaN once here so
downstream statistics only ever check `np.isfinite`.
"""

import math

from datetime import date

import numpy as np

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Sample(BaseModel):
    """One dated numeric observation. NaN means missing."""

    model_config = ConfigDict(frozen=True)

    date: date
    value: float = Field(default=math.nan, description="Observed value (NaN = missing)")

    @field_validator("value", mode="before")
    @classmethod
    def none_to_nan(cls, v: float | None) -> float:
        return math.nan if v is None else v


class Series(BaseModel):
    """
    Date-ordered sequence of samples.

    Dates must be strictly ascending. Gaps (missing calendar days) are allowed;
    duplicate dates are rejected so callers pre-aggregate multiple sessions.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Metric name (e.g., 'usage_hours')")
    samples: list[Sample] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_ordering(self) -> "Series":
        for prev, cur in zip(self.samples, self.samples[1:]):
            if cur.date == prev.date:
                raise ValueError(f"Duplicate sample date {cur.date} in series")
            if cur.date < prev.date:
                raise ValueError(
                    f"Series dates must be ascending: {cur.date} follows {prev.date}"
                )
        return self

    @classmethod
    def from_pairs(
        cls, pairs: list[tuple[date, float | None]], name: str = ""
    ) -> "Series":
        """Build a series from (date, value) pairs, sorting by date."""
        ordered = sorted(pairs, key=lambda p: p[0])
        return cls(
            name=name, samples=[Sample(date=d, value=v) for d, v in ordered]
        )

    def __len__(self) -> int:
        return len(self.samples)

    def values(self) -> np.ndarray:
        """Sample values as a float array (NaN for missing)."""
        return np.array([s.value for s in self.samples], dtype=float)

    def dates(self) -> list[date]:
        """Sample dates in ascending order."""
        return [s.date for s in self.samples]

    @property
    def valid_count(self) -> int:
        """Number of finite samples."""
        return int(np.isfinite(self.values()).sum())
