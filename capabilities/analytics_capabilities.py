"""
Analytics Capabilities
- ComparePeriod: compares sales (or units sold) between two date ranges
"""
from datetime import date, timedelta

from models import SubscriptionTier
from .base import Capability
from .types import CapabilityParameter, ParameterType

METRICS = ("sales", "quantity")


def percentage_change(before: float, after: float) -> float:
    """Percent change from `before` to `after`; 100 when growing from zero"""
    if before != 0:
        return round((after - before) / before * 100, 2)
    return 100.0 if after > 0 else 0.0


def trend_of(change: float) -> str:
    if change > 0:
        return "up"
    if change < 0:
        return "down"
    return "stable"


class ComparePeriodCapability(Capability):
    name = "ComparePeriod"
    description = (
        "Compares two date ranges and reports totals, daily averages and the change between them. "
        "Defaults to last month versus this month."
    )
    category = "Analytics"
    required_tier = SubscriptionTier.PROFESSIONAL
    error_code = "COMPARE_PERIOD_ERROR"
    parameters = (
        CapabilityParameter("period1Start", ParameterType.DATE, "First period start (defaults to first day of last month)"),
        CapabilityParameter("period1End", ParameterType.DATE, "First period end (defaults to last day of last month)"),
        CapabilityParameter("period2Start", ParameterType.DATE, "Second period start (defaults to first day of this month)"),
        CapabilityParameter("period2End", ParameterType.DATE, "Second period end (defaults to today)"),
        CapabilityParameter("metric", ParameterType.STRING, "What to compare", default="sales", examples=METRICS),
    )
    example_queries = (
        "Compare this month's sales with last month",
        "How did sales change compared to the previous week?",
        "Compare units sold in January and February",
    )

    def periods(self, params: dict) -> tuple[tuple[date, date], tuple[date, date]]:
        today = self.today()
        this_month_start = today.replace(day=1)
        last_month_end = this_month_start - timedelta(days=1)
        last_month_start = last_month_end.replace(day=1)

        period1 = (
            self.get_date(params, "period1Start") or last_month_start,
            self.get_date(params, "period1End") or last_month_end,
        )
        period2 = (
            self.get_date(params, "period2Start") or this_month_start,
            self.get_date(params, "period2End") or today,
        )
        return period1, period2

    def _validate(self, params, result):
        (p1_start, p1_end), (p2_start, p2_end) = self.periods(params)
        if p1_start > p1_end:
            result.add_error("INVALID_DATE_RANGE", "First period start cannot be after its end")
        if p2_start > p2_end:
            result.add_error("INVALID_DATE_RANGE", "Second period start cannot be after its end")
        metric = (self.get_str(params, "metric") or "sales").lower()
        if metric not in METRICS:
            result.add_error("INVALID_PARAMETER", f"metric must be one of: {', '.join(METRICS)}")

    def _summarize(self, source, start: date, end: date, metric: str) -> dict:
        total = source.get_total_sales(start, end, metric)
        daily = source.get_daily_sales(start, end, metric)
        return {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "total": total,
            "day_count": len(daily),
            "average_daily": round(total / len(daily), 2) if daily else 0.0,
        }

    def _run(self, source, params, cancel):
        (p1_start, p1_end), (p2_start, p2_end) = self.periods(params)
        metric = (self.get_str(params, "metric") or "sales").lower()
        if metric not in METRICS:
            metric = "sales"

        period1 = self._summarize(source, p1_start, p1_end, metric)
        cancel.raise_if_cancelled()
        period2 = self._summarize(source, p2_start, p2_end, metric)

        change = percentage_change(period1["total"], period2["total"])
        data = {
            "comparison": {
                "period1": period1,
                "period2": period2,
                "change": {
                    "absolute": round(period2["total"] - period1["total"], 2),
                    "percentage": change,
                    "trend": trend_of(change),
                },
            },
            "metric": metric,
        }
        return data, None
