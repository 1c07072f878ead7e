"""
Time-series records exchanged with the ingestion collaborator.

Points are immutable; a ``TimeSeriesData`` is created per query and is only
ever cached, never persisted by the analytics core.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class Granularity(Enum):
    """Time-bucket width used to aggregate raw samples."""

    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    ONE_DAY = "1d"

    @property
    def step(self) -> timedelta:
        """Step used to iterate a time range at this granularity."""
        return {
            Granularity.FIFTEEN_MINUTES: timedelta(minutes=15),
            Granularity.ONE_HOUR: timedelta(hours=1),
            Granularity.ONE_DAY: timedelta(days=1),
        }[self]

    @property
    def samples_per_hour(self) -> float:
        return timedelta(hours=1) / self.step

    @classmethod
    def parse(cls, value: Union[str, "Granularity"]) -> "Granularity":
        """Parse a granularity string; unknown values fall back to hourly."""
        if isinstance(value, Granularity):
            return value
        for member in cls:
            if member.value == value:
                return member
        return cls.ONE_HOUR


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Single aggregated sample for one metric of one subject."""

    timestamp: datetime
    value: float
    metric: str = "usage"
    unit: str = "watts"


@dataclass
class TimeSeriesData:
    """Result of a time-series query for one subject."""

    subject_id: str
    start_time: datetime
    end_time: datetime
    granularity: Granularity
    points: List[TimeSeriesPoint] = field(default_factory=list)
    aggregated_metrics: Dict[str, float] = field(default_factory=dict)
    analyzed_at: Optional[datetime] = None
    success: bool = True
    error_message: Optional[str] = None
    data_source: str = "InfluxDB"
    processing_time_ms: float = 0.0

    def __post_init__(self):
        if self.analyzed_at is None:
            self.analyzed_at = datetime.now()

    @property
    def total_data_points(self) -> int:
        return len(self.points)

    def values(self) -> List[float]:
        """Sample values in timestamp order."""
        return [point.value for point in self.points]

    def timestamps(self) -> List[datetime]:
        return [point.timestamp for point in self.points]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        result = asdict(self)
        result["granularity"] = self.granularity.value
        result["start_time"] = self.start_time.isoformat()
        result["end_time"] = self.end_time.isoformat()
        result["analyzed_at"] = self.analyzed_at.isoformat()
        result["points"] = [
            {**asdict(point), "timestamp": point.timestamp.isoformat()}
            for point in self.points
        ]
        result["total_data_points"] = self.total_data_points
        return result
