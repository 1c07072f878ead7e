"""
Household behavior profiling.

Builds device usage patterns, shared routines, whole-house energy patterns
and security patterns from timestamp-indexed device series.
"""

from collections import defaultdict
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..models.patterns import (AnomalyDetection, DeviceUsagePattern,
                               EnergyPattern, HouseholdRoutine,
                               SecurityPattern)
from .patterns import hourly_profile, samples_per_hour

DAY_HOURS = range(6, 22)
UNUSUAL_HOURS = range(0, 5)

# Share of a device's activity between 00:00 and 05:00 that counts as unusual
UNUSUAL_ACTIVITY_SHARE = 0.2
ANOMALY_SEVERITY_THRESHOLD = 0.5

# Share of samples in which a device is considered active
ACTIVE_FRACTION_LEVELS = [
    (0.8, "continuous"),
    (0.4, "frequent"),
    (0.1, "occasional"),
]


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 22:
        return "evening"
    return "night"


def usage_frequency(active_fraction: float) -> str:
    for threshold, label in ACTIVE_FRACTION_LEVELS:
        if active_fraction >= threshold:
            return label
    return "rare"


def device_usage_pattern(device_id: str, series: pd.Series) -> Optional[DeviceUsagePattern]:
    """Usage level and preferred time of one device; None without data."""
    if series.empty:
        return None

    peak = series.max()
    # Active means above 10% of the device's own peak
    active_fraction = float((series > 0.1 * peak).mean()) if peak > 0 else 0.0
    profile = hourly_profile(series)
    peak_hour = int(profile.idxmax())
    profile_peak = profile.max()
    spread = float((profile_peak - profile.min()) / profile_peak) if profile_peak > 0 else 0.0
    coverage = min(1.0, len(series) / (168 * samples_per_hour(series)))

    frequency = usage_frequency(active_fraction)
    return DeviceUsagePattern(
        device_id=device_id,
        pattern_type="daily_usage",
        description=(
            f"{device_id} is used {frequency}ly, mostly in the {time_of_day(peak_hour)} "
            f"(peak around {peak_hour:02d}:00)"
            if frequency != "continuous"
            else f"{device_id} runs continuously, peaking around {peak_hour:02d}:00"
        ),
        confidence=float(min(1.0, coverage * max(spread, 0.1))),
        usage_frequency=frequency,
        preferred_time=f"{peak_hour:02d}:00",
        usage_data={
            "active_fraction": active_fraction,
            "peak_hour": peak_hour,
            "mean_value": float(series.mean()),
            "peak_value": float(peak),
            "sample_count": int(len(series)),
        },
    )


def household_routines(patterns: List[DeviceUsagePattern]) -> List[HouseholdRoutine]:
    """
    Routines are peak hours shared by at least two devices.

    Returned in hour order.
    """
    by_hour: Dict[int, List[DeviceUsagePattern]] = defaultdict(list)
    for pattern in patterns:
        if pattern.usage_frequency == "continuous":
            continue
        by_hour[pattern.usage_data["peak_hour"]].append(pattern)

    routines = []
    for hour in sorted(by_hour):
        members = by_hour[hour]
        if len(members) < 2:
            continue
        period = time_of_day(hour)
        devices = [p.device_id for p in members]
        routines.append(
            HouseholdRoutine(
                routine_id=f"routine_{hour:02d}",
                routine_name=f"{period.capitalize()} routine",
                description=f"{', '.join(devices)} are used together around {hour:02d}:00",
                confidence=float(np.mean([p.confidence for p in members])),
                time_of_day=f"{hour:02d}:00",
                involved_devices=devices,
                routine_details={"period": period, "device_count": len(devices)},
            )
        )
    return routines


def energy_patterns(household_id: str, load: pd.Series) -> List[EnergyPattern]:
    """Base load, peak load and day/night split of the combined house load."""
    if load.empty or load.mean() <= 0:
        return []

    mean_load = float(load.mean())
    base_load = float(load.quantile(0.1))
    profile = hourly_profile(load)
    peak_hour = int(profile.idxmax())
    peak_load = float(profile.max())

    is_day = np.isin(load.index.hour, list(DAY_HOURS))
    total = float(load.sum())
    day_share = float(load[is_day].sum() / total) if total > 0 else 0.0

    return [
        EnergyPattern(
            pattern_id=f"{household_id}_base_load",
            pattern_type="base_load",
            description=f"Base load of {base_load:.1f} is {base_load / mean_load:.0%} of average load",
            energy_impact=base_load / mean_load,
            energy_data={"base_load": base_load, "mean_load": mean_load},
        ),
        EnergyPattern(
            pattern_id=f"{household_id}_peak_load",
            pattern_type="peak_load",
            description=(
                f"Load peaks around {peak_hour:02d}:00 at "
                f"{peak_load / mean_load:.1f}x the average"
            ),
            energy_impact=peak_load / mean_load,
            time_of_day=f"{peak_hour:02d}:00",
            energy_data={"peak_load": peak_load, "peak_hour": peak_hour, "mean_load": mean_load},
        ),
        EnergyPattern(
            pattern_id=f"{household_id}_day_night_split",
            pattern_type="day_night_split",
            description=f"{day_share:.0%} of energy is used between 06:00 and 22:00",
            energy_impact=day_share,
            energy_data={"day_share": day_share, "night_share": 1 - day_share},
        ),
    ]


def risk_level(score: float) -> str:
    if score >= 0.8:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"


def security_patterns(
    subject_id: str,
    device_series: Dict[str, pd.Series],
    anomalies: Optional[Dict[str, List[AnomalyDetection]]] = None,
) -> List[SecurityPattern]:
    """
    Unusual-hour activity and significant anomalies per device.

    A device is active where it exceeds 10% of its own peak. Its activity is
    unusual when at least ``UNUSUAL_ACTIVITY_SHARE`` of it falls between
    00:00 and 05:00; continuously running devices are not checked. Anomalies
    count from ``ANOMALY_SEVERITY_THRESHOLD`` severity. Without findings one
    ``normal_activity`` pattern covers every observed device.
    """
    anomalies = anomalies or {}
    patterns: List[SecurityPattern] = []
    observed: List[str] = []

    for device_id, series in device_series.items():
        if series.empty:
            continue
        observed.append(device_id)
        peak = series.max()
        if peak <= 0:
            continue

        active = (series > 0.1 * peak).to_numpy()
        if usage_frequency(float(active.mean())) == "continuous":
            continue
        unusual = active & np.isin(series.index.hour, list(UNUSUAL_HOURS))
        share = float(unusual.sum() / active.sum())
        if share < UNUSUAL_ACTIVITY_SHARE:
            continue

        patterns.append(
            SecurityPattern(
                pattern_id=f"{device_id}_unusual_hours",
                pattern_type="unusual_hour_activity",
                description=f"{share:.0%} of {device_id} activity happens between 00:00 and 05:00",
                security_level=1.0 - share,
                risk_assessment=risk_level(share),
                security_devices=[device_id],
                security_data={"unusual_share": share, "active_samples": int(active.sum())},
            )
        )

    for device_id, found in anomalies.items():
        significant = [a for a in found if a.severity >= ANOMALY_SEVERITY_THRESHOLD]
        if not significant:
            continue
        worst = max(a.severity for a in significant)
        patterns.append(
            SecurityPattern(
                pattern_id=f"{device_id}_anomalous_activity",
                pattern_type="anomalous_activity",
                description=(
                    f"{len(significant)} significant anomalies on {device_id}, "
                    f"worst severity {worst:.2f}"
                ),
                security_level=1.0 - worst,
                risk_assessment=risk_level(worst),
                security_devices=[device_id],
                security_data={
                    "anomaly_count": len(significant),
                    "max_severity": worst,
                    "anomaly_ids": [a.anomaly_id for a in significant],
                },
            )
        )

    if not patterns and observed:
        patterns.append(
            SecurityPattern(
                pattern_id=f"{subject_id}_normal_activity",
                pattern_type="normal_activity",
                description=f"No unusual-hour activity or significant anomalies for {subject_id}",
                security_level=1.0,
                risk_assessment="low",
                security_devices=observed,
            )
        )
    return patterns
