from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"

# (check name, table that must exist, query returning offending sample rows)
ORPHAN_CHECKS: tuple[tuple[str, str, str], ...] = (
    (
        "access_grant_orphan_employee",
        "access_grants",
        """
        select g.id
        from access_grants g
        left join employees e on e.uuid = g.employee_uuid
        where e.uuid is null
        limit 20
        """,
    ),
    (
        "access_grant_orphan_application",
        "access_grants",
        """
        select g.id
        from access_grants g
        left join applications a on a.uuid = g.application_uuid
        where a.uuid is null
        limit 20
        """,
    ),
    (
        "employee_session_orphan_employee",
        "employee_sessions",
        """
        select s.id
        from employee_sessions s
        left join employees e on e.uuid = s.employee_uuid
        where e.uuid is null
        limit 20
        """,
    ),
)


@dataclass(slots=True)
class CheckResult:
    name: str
    status: str
    details: dict[str, Any]

    @property
    def ok(self) -> bool:
        return self.status == "ok"


def expected_head() -> str | None:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return ScriptDirectory.from_config(config).get_current_head()


def run_checks(engine: Engine, *, head: str | None = None) -> dict[str, Any]:
    head = head if head is not None else expected_head()
    checks: list[CheckResult] = []
    tables = set(inspect(engine).get_table_names())

    with engine.connect() as conn:
        current_versions: list[str] = []
        if "alembic_version" in tables:
            current_versions = [str(row[0]) for row in conn.execute(text("select version_num from alembic_version"))]
        checks.append(CheckResult("alembic_version", "ok" if current_versions else "fail", {"current": current_versions}))
        checks.append(
            CheckResult(
                "migration_up_to_date",
                "ok" if head in current_versions else "warn",
                {"expected_head": head, "current": current_versions},
            )
        )

        for name, table, query in ORPHAN_CHECKS:
            if table not in tables:
                checks.append(CheckResult(name, "warn", {"missing_table": table}))
                continue
            rows = conn.execute(text(query)).fetchall()
            checks.append(CheckResult(name, "fail" if rows else "ok", {"sample_ids": [row[0] for row in rows]}))

        if "applications" in tables:
            out_of_range = conn.execute(
                text(
                    """
                    select uuid
                    from applications
                    where rate_limit_per_minute < 1 or rate_limit_per_minute > 1000
                    limit 20
                    """
                )
            ).fetchall()
            checks.append(
                CheckResult(
                    "application_rate_limit_range",
                    "fail" if out_of_range else "ok",
                    {"sample_uuids": [str(row[0]) for row in out_of_range]},
                )
            )

    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "ok": all(check.status != "fail" for check in checks),
        "checks": [{"name": check.name, "status": check.status, "details": check.details} for check in checks],
    }
