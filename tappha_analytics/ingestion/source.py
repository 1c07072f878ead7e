"""
Ingestion collaborator interface.

The analytics core never stores raw events. It asks a ``TimeSeriesSource``
for aggregated points of one subject over a time range.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..models.timeseries import Granularity, TimeSeriesPoint


class TimeSeriesSource(ABC):
    """Supplies aggregated device samples and household and user membership."""

    @abstractmethod
    async def fetch_series(
        self,
        subject_id: str,
        start: datetime,
        end: datetime,
        granularity: Granularity,
    ) -> List[TimeSeriesPoint]:
        """Return points for ``subject_id`` in [start, end] ordered by time."""

    @abstractmethod
    async def household_devices(self, household_id: str) -> List[str]:
        """Return device ids belonging to a household (empty when unknown)."""

    @abstractmethod
    async def user_devices(self, user_id: str) -> List[str]:
        """Return device ids a user operates (empty when unknown)."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        """Release connections."""


class StaticTimeSeriesSource(TimeSeriesSource):
    """
    Source over series held in memory.

    Used when the caller already has the samples (batch jobs, notebooks,
    tests). Points outside the requested range are filtered out, and series
    recorded at a finer step are bucket-averaged to the requested
    granularity.
    """

    def __init__(
        self,
        series: Optional[Dict[str, Iterable[TimeSeriesPoint]]] = None,
        households: Optional[Dict[str, List[str]]] = None,
        users: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        self._series: Dict[str, List[TimeSeriesPoint]] = {
            subject: sorted(points, key=lambda p: p.timestamp)
            for subject, points in (series or {}).items()
        }
        self._households = dict(households or {})
        self._users = dict(users or {})
        self.fetch_calls = 0

    async def fetch_series(
        self,
        subject_id: str,
        start: datetime,
        end: datetime,
        granularity: Granularity,
    ) -> List[TimeSeriesPoint]:
        self.fetch_calls += 1
        points = [
            point
            for point in self._series.get(subject_id, [])
            if start <= point.timestamp <= end
        ]
        return _bucket_points(points, start, granularity)

    async def household_devices(self, household_id: str) -> List[str]:
        return list(self._households.get(household_id, []))

    async def user_devices(self, user_id: str) -> List[str]:
        return list(self._users.get(user_id, []))


def _bucket_points(
    points: List[TimeSeriesPoint], start: datetime, granularity: Granularity
) -> List[TimeSeriesPoint]:
    """Average points into granularity-wide buckets anchored at ``start``."""
    if len(points) < 2:
        return points

    step = granularity.step
    finest = min(
        (b.timestamp - a.timestamp for a, b in zip(points, points[1:])),
        default=step,
    )
    if finest >= step:
        return points

    buckets: Dict[int, List[TimeSeriesPoint]] = {}
    for point in points:
        buckets.setdefault(int((point.timestamp - start) / step), []).append(point)

    return [
        TimeSeriesPoint(
            timestamp=start + index * step,
            value=sum(p.value for p in members) / len(members),
            metric=members[0].metric,
            unit=members[0].unit,
        )
        for index, members in sorted(buckets.items())
    ]
