"""InfluxDB-backed time-series source using Flux aggregation queries."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync

from ..config.settings import InfluxDBSettings
from ..exceptions import DataSourceError
from ..models.timeseries import Granularity, TimeSeriesPoint
from .source import TimeSeriesSource


def _flux_time(value: datetime) -> str:
    """RFC3339 timestamp; naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _flux_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class InfluxTimeSeriesSource(TimeSeriesSource):
    """
    Query device samples from InfluxDB.

    Each query selects one device, windows it at the requested granularity
    with ``aggregateWindow(fn: mean)`` and returns the mean per bucket.
    """

    def __init__(
        self,
        settings: InfluxDBSettings,
        client: Optional[InfluxDBClientAsync] = None,
    ) -> None:
        self.settings = settings
        self.logger = logging.getLogger(f"{__name__}.InfluxTimeSeriesSource")
        self._client = client

    def _get_client(self) -> InfluxDBClientAsync:
        if self._client is None:
            self._client = InfluxDBClientAsync(
                url=self.settings.url,
                token=self.settings.token.get_secret_value(),
                org=self.settings.org,
                timeout=self.settings.timeout_ms,
            )
            self.logger.info(f"Connected to InfluxDB at {self.settings.url}")
        return self._client

    def build_series_query(
        self,
        subject_id: str,
        start: datetime,
        end: datetime,
        granularity: Granularity,
    ) -> str:
        return f"""
        from(bucket: "{_flux_string(self.settings.bucket)}")
          |> range(start: {_flux_time(start)}, stop: {_flux_time(end)})
          |> filter(fn: (r) => r["_measurement"] == "{_flux_string(self.settings.measurement)}")
          |> filter(fn: (r) => r["device_id"] == "{_flux_string(subject_id)}")
          |> filter(fn: (r) => r["_field"] == "value")
          |> aggregateWindow(every: {granularity.value}, fn: mean, createEmpty: false)
          |> keep(columns: ["_time", "_value", "_field", "unit"])
        """

    def build_household_query(self, household_id: str) -> str:
        return self._device_tag_query("household_id", household_id)

    def build_user_query(self, user_id: str) -> str:
        return self._device_tag_query("user_id", user_id)

    def _device_tag_query(self, tag: str, value: str) -> str:
        return f"""
        import "influxdata/influxdb/schema"
        schema.tagValues(
          bucket: "{_flux_string(self.settings.bucket)}",
          tag: "device_id",
          predicate: (r) => r["{tag}"] == "{_flux_string(value)}",
          start: -365d
        )
        """

    async def fetch_series(
        self,
        subject_id: str,
        start: datetime,
        end: datetime,
        granularity: Granularity,
    ) -> List[TimeSeriesPoint]:
        query = self.build_series_query(subject_id, start, end, granularity)
        self.logger.debug(f"Flux series query for {subject_id}: {query}")

        try:
            tables = await self._get_client().query_api().query(
                query=query, org=self.settings.org
            )
        except Exception as e:
            self.logger.error(f"Failed to query InfluxDB for {subject_id}: {e}")
            raise DataSourceError(f"InfluxDB query failed for {subject_id}: {e}") from e

        points = []
        for table in tables:
            for record in table.records:
                value = record.get_value()
                if value is None:
                    continue
                points.append(
                    TimeSeriesPoint(
                        timestamp=record.get_time(),
                        value=float(value),
                        metric=record.get_field() or "value",
                        unit=record.values.get("unit") or "watts",
                    )
                )

        points.sort(key=lambda p: p.timestamp)
        self.logger.info(f"Fetched {len(points)} points for {subject_id}")
        return points

    async def household_devices(self, household_id: str) -> List[str]:
        return await self._device_ids(
            self.build_household_query(household_id), f"household {household_id}"
        )

    async def user_devices(self, user_id: str) -> List[str]:
        return await self._device_ids(self.build_user_query(user_id), f"user {user_id}")

    async def _device_ids(self, query: str, owner: str) -> List[str]:
        try:
            tables = await self._get_client().query_api().query(
                query=query, org=self.settings.org
            )
        except Exception as e:
            self.logger.error(f"Failed to list devices for {owner}: {e}")
            raise DataSourceError(f"InfluxDB device lookup failed for {owner}: {e}") from e

        return sorted(
            {str(record.get_value()) for table in tables for record in table.records}
        )

    async def health_check(self) -> bool:
        try:
            return await self._get_client().ping()
        except Exception as e:
            self.logger.warning(f"InfluxDB ping failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
