"""
Business reporting for the admin console.

The functions here take plain rows and a reference day and return plain
dictionaries, so they can be tested without a database. All boundaries are
UTC calendar days and months.
"""

from __future__ import annotations

import csv
import io
from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from src.appointment.models import AppointmentStatus, ServiceType

TREND_MONTHS = 6
DAILY_REVENUE_DAYS = 7
TOP_SERVICES = 5

CSV_HEADERS = ["Month", "Appointments", "Revenue", "New Customers", "Average Order"]


@dataclass(frozen=True)
class AppointmentRow:
    created_at: datetime
    status: AppointmentStatus
    service_type: ServiceType
    total_price: float | None

    @property
    def revenue(self) -> float:
        if self.status is AppointmentStatus.CANCELED:
            return 0.0
        return self.total_price or 0.0


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def month_start(day: date, offset: int = 0) -> date:
    """First day of the month `offset` months away from `day`'s month."""
    index = day.year * 12 + day.month - 1 + offset
    return date(index // 12, index % 12 + 1, 1)


def growth_percentage(current: float, previous: float) -> float:
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def reporting_window_start(today: date, period_days: int) -> datetime:
    """Earliest timestamp any part of the report looks at."""
    return min(
        start_of_day(today - timedelta(days=period_days)),
        start_of_day(month_start(today, -(TREND_MONTHS - 1))),
    )


def _between(moment: datetime, start: date, end: date) -> bool:
    return start_of_day(start) <= moment < start_of_day(end)


def build_report(
    appointments: Sequence[AppointmentRow],
    customer_joined: Sequence[datetime],
    total_customers: int,
    today: date,
    period_days: int,
) -> dict[str, Any]:
    this_month = month_start(today)
    last_month = month_start(today, -1)
    tomorrow = today + timedelta(days=1)
    period_start = start_of_day(today - timedelta(days=period_days))

    current_revenue = sum(
        a.revenue for a in appointments if _between(a.created_at, this_month, tomorrow)
    )
    previous_revenue = sum(
        a.revenue
        for a in appointments
        if _between(a.created_at, last_month, this_month)
    )

    daily_days = min(period_days, DAILY_REVENUE_DAYS)
    daily: dict[date, float] = defaultdict(float)
    for a in appointments:
        daily[a.created_at.date()] += a.revenue
    daily_revenue = [
        {"date": day.isoformat(), "amount": daily.get(day, 0.0)}
        for day in (
            today - timedelta(days=offset) for offset in reversed(range(daily_days))
        )
    ]

    new_this_month = sum(
        1 for c in customer_joined if _between(c, this_month, tomorrow)
    )
    new_last_month = sum(
        1 for c in customer_joined if _between(c, last_month, this_month)
    )

    in_period = [a for a in appointments if a.created_at >= period_start]
    completed = sum(1 for a in in_period if a.status is AppointmentStatus.COMPLETED)
    canceled = sum(1 for a in in_period if a.status is AppointmentStatus.CANCELED)
    completion_rate = round(completed / len(in_period) * 100, 2) if in_period else 0.0

    service_counts = Counter(a.service_type for a in in_period)
    service_revenue: dict[ServiceType, float] = defaultdict(float)
    for a in in_period:
        service_revenue[a.service_type] += a.revenue
    popular_services = [
        {
            "service_type": service.value,
            "count": count,
            "revenue": service_revenue[service],
        }
        for service, count in service_counts.most_common(TOP_SERVICES)
    ]

    monthly_trends = []
    for offset in range(-(TREND_MONTHS - 1), 1):
        start = month_start(today, offset)
        end = month_start(today, offset + 1)
        month_appointments = [
            a for a in appointments if _between(a.created_at, start, end)
        ]
        monthly_trends.append(
            {
                "month": start.strftime("%b %y"),
                "appointments": len(month_appointments),
                "revenue": sum(a.revenue for a in month_appointments),
                "customers": sum(
                    1 for c in customer_joined if _between(c, start, end)
                ),
            }
        )

    return {
        "revenue": {
            "current_month": current_revenue,
            "previous_month": previous_revenue,
            "growth_percentage": growth_percentage(current_revenue, previous_revenue),
            "daily_revenue": daily_revenue,
        },
        "customers": {
            "total": total_customers,
            "new_this_month": new_this_month,
            "growth_percentage": growth_percentage(new_this_month, new_last_month),
        },
        "appointments": {
            "total_this_period": len(in_period),
            "completed": completed,
            "canceled": canceled,
            "completion_rate": completion_rate,
        },
        "popular_services": popular_services,
        "monthly_trends": monthly_trends,
    }


def trends_to_csv(monthly_trends: Sequence[dict[str, Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in monthly_trends:
        count = row["appointments"]
        average = f"{row['revenue'] / count:.2f}" if count else "0"
        writer.writerow(
            [row["month"], count, f"{row['revenue']:.2f}", row["customers"], average]
        )
    return buffer.getvalue()
