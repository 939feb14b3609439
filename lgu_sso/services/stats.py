from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from lgu_sso.models import Application, AuditAction, AuditLog, Employee
from lgu_sso.schemas import DashboardStats

RECENT_LOGIN_WINDOW = timedelta(days=7)


def dashboard_stats(db: Session, *, now: datetime | None = None) -> DashboardStats:
    """Counts for the dashboard landing page, read in a single statement."""
    now = now or datetime.now(timezone.utc)
    since = now - RECENT_LOGIN_WINDOW

    row = db.execute(
        select(
            select(func.count()).select_from(Employee).scalar_subquery().label("total_employees"),
            select(func.count())
            .select_from(Employee)
            .where(Employee.is_active.is_(True))
            .scalar_subquery()
            .label("active_employees"),
            select(func.count()).select_from(Application).scalar_subquery().label("total_applications"),
            select(func.count())
            .select_from(Application)
            .where(Application.is_active.is_(True))
            .scalar_subquery()
            .label("active_applications"),
            select(func.count())
            .select_from(AuditLog)
            .where(AuditLog.action == AuditAction.LOGIN.value, AuditLog.created_at >= since)
            .scalar_subquery()
            .label("recent_logins"),
        )
    ).one()

    return DashboardStats(
        totalEmployees=int(row.total_employees or 0),
        activeEmployees=int(row.active_employees or 0),
        totalApplications=int(row.total_applications or 0),
        activeApplications=int(row.active_applications or 0),
        recentLogins=int(row.recent_logins or 0),
    )
