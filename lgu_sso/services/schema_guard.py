from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


# Columns the service reads on every request.
REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"uuid", "email", "password_hash", "is_active"},
    "applications": {"uuid", "client_id", "client_secret_hash", "redirect_uris", "rate_limit_per_minute"},
    "access_grants": {"id", "employee_uuid", "application_uuid", "role"},
    "employee_sessions": {"jti", "employee_uuid", "expires_at", "revoked_at"},
    "audit_logs": {"id", "action", "metadata", "created_at"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "access_role": {"guest", "standard", "administrator", "super_administrator"},
}


def _check_columns(inspector: Any, issues: list[str]) -> None:
    for table_name, required in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(column.get("name")) for column in inspector.get_columns(table_name)}
        except Exception as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing = sorted(required - present)
        if missing:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing)}")


def _enum_labels(inspector: Any, warnings: list[str]) -> dict[str, set[str]]:
    try:
        enums = inspector.get_enums() or []
    except Exception as exc:
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return {}
    return {
        str(item["name"]): {str(label) for label in item.get("labels") or []}
        for item in enums
        if item.get("name")
    }


def _check_enums(inspector: Any, issues: list[str], warnings: list[str]) -> None:
    labels_by_name = _enum_labels(inspector, warnings)
    for enum_name, required in REQUIRED_ENUM_VALUES.items():
        labels = labels_by_name.get(enum_name)
        if labels is None:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing = sorted(required - labels)
        if missing:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing)}")


def _check_alembic_version(engine: Engine, issues: list[str]) -> None:
    try:
        with engine.connect() as connection:
            version = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except Exception as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}")
        return
    if not str(version or "").strip():
        issues.append("ALEMBIC_VERSION_EMPTY")


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Compare the live database with what this build of the service expects.

    An enum type that cannot be found is only a warning. Enum types exist on
    PostgreSQL alone, so other dialects skip that part.
    """
    issues: list[str] = []
    warnings: list[str] = []
    inspector = inspect(engine)

    _check_columns(inspector, issues)
    if engine.dialect.name == "postgresql":
        _check_enums(inspector, issues, warnings)
    _check_alembic_version(engine, issues)

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=datetime.now(timezone.utc),
        issues=issues,
        warnings=warnings,
    )
