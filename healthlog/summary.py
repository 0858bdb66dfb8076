"""Period summaries over a user's daily records.

Pure functions: the store fetches the records for the window, this module
only reduces them.
"""
from datetime import datetime, timedelta
from typing import Any, Iterable, NamedTuple, Optional, Sequence, Tuple

from healthlog.days import end_of_day, normalize_day
from healthlog.schemas import URINE_COLOR_LABELS, BloodPressureAverage, SummaryResponse

# Days looked back from "now" for each period label; unknown labels are daily
PERIOD_LOOKBACK_DAYS = {
    "daily": 1,
    "weekly": 7,
    "monthly": 30,
}
DEFAULT_PERIOD = "daily"


class SummaryWindow(NamedTuple):
    period_label: Optional[str]
    start_day: datetime
    end_day: datetime
    records: Sequence[Any]


def resolve_window(period_label: Optional[str], now: datetime) -> Tuple[datetime, datetime]:
    lookback = PERIOD_LOOKBACK_DAYS.get(
        period_label, PERIOD_LOOKBACK_DAYS[DEFAULT_PERIOD]
    )
    return normalize_day(now - timedelta(days=lookback)), end_of_day(now)


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0


def summarize(
    records: Sequence[Any],
    period_label: Optional[str],
    start_day: datetime,
    end_day: datetime,
) -> SummaryResponse:
    """Reduce a window's records to averages, a color distribution and counts.

    Records are anything exposing the ``HealthRecord`` column attributes. An
    empty window yields the all-zero summary. Blood pressure is averaged only
    over records carrying both readings.
    """
    distribution = {label: 0 for label in URINE_COLOR_LABELS}
    for record in records:
        color = getattr(record, "urine_color", None)
        if color in distribution:
            distribution[color] += 1

    with_bp = [
        r
        for r in records
        if getattr(r, "systolic", None) and getattr(r, "diastolic", None)
    ]

    return SummaryResponse(
        water_intake_avg=_mean(r.water_intake for r in records),
        bathroom_visits_avg=_mean(r.bathroom_visits for r in records),
        stress_level_avg=_mean(r.stress_level for r in records),
        urine_color_distribution=distribution,
        dialysis_count=sum(1 for r in records if r.dialysis_performed),
        blood_pressure_avg=BloodPressureAverage(
            systolic_avg=_mean(r.systolic for r in with_bp),
            diastolic_avg=_mean(r.diastolic for r in with_bp),
        ),
        records_count=len(records),
        period_label=period_label,
        start_day=start_day,
        end_day=end_day,
    )


def summarize_window(window: SummaryWindow) -> SummaryResponse:
    return summarize(window.records, window.period_label, window.start_day, window.end_day)
