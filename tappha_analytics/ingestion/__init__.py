"""
Time-series ingestion collaborators.

- TimeSeriesSource: interface used by every analysis service
- StaticTimeSeriesSource: in-memory series
- InfluxTimeSeriesSource: Flux range + aggregateWindow queries
"""

from .source import StaticTimeSeriesSource, TimeSeriesSource

__all__ = ["StaticTimeSeriesSource", "TimeSeriesSource"]
