from dataclasses import dataclass


@dataclass(frozen=True)
class DashboardMetrics:
    weekly_paid_cents: int = 0
    monthly_paid_cents: int = 0
    upcoming_job_count: int = 0
