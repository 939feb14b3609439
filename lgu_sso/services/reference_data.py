from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from lgu_sso.errors import NotFound, ValidationFailed
from lgu_sso.models import Location, LocationLevel, Office

# Expected parent level for each address field, top-down.
ADDRESS_LEVELS: tuple[tuple[str, LocationLevel, str | None], ...] = (
    ("region_code", LocationLevel.REGION, None),
    ("province_code", LocationLevel.PROVINCE, "region_code"),
    ("city_code", LocationLevel.CITY, "province_code"),
    ("barangay_code", LocationLevel.BARANGAY, "city_code"),
)


def list_offices(db: Session) -> list[Office]:
    return list(db.scalars(select(Office).order_by(Office.name.asc())).all())


def get_office(db: Session, office_id: int) -> Office:
    office = db.get(Office, office_id)
    if office is None:
        raise NotFound("Office not found.")
    return office


def list_locations(db: Session, *, level: LocationLevel, parent_code: str | None = None) -> list[Location]:
    stmt = select(Location).where(Location.level == level).order_by(Location.name.asc())
    if parent_code is not None:
        parent = db.get(Location, parent_code)
        if parent is None:
            raise NotFound("Location not found.")
        stmt = stmt.where(Location.parent_code == parent_code)
    return list(db.scalars(stmt).all())


def load_locations(db: Session, codes: Iterable[str | None]) -> dict[str, Location]:
    wanted = {code for code in codes if code}
    if not wanted:
        return {}
    rows = db.scalars(select(Location).where(Location.code.in_(wanted))).all()
    return {row.code: row for row in rows}


def validate_address(db: Session, address: dict[str, Any]) -> None:
    """Check every given address code exists at its level and sits under the given parent."""
    locations = load_locations(db, (address.get(field) for field, _, _ in ADDRESS_LEVELS))
    errors: dict[str, list[str]] = {}

    for field, level, parent_field in ADDRESS_LEVELS:
        code = address.get(field)
        if not code:
            continue
        location = locations.get(code)
        if location is None or location.level != level:
            errors[field] = [f"The selected {field} is invalid."]
            continue
        parent_code = address.get(parent_field) if parent_field else None
        if parent_code and location.parent_code != parent_code:
            errors[field] = [f"The selected {field} does not belong to {parent_field}."]

    if errors:
        raise ValidationFailed("The given address is invalid.", errors=errors)


_LEVEL_ORDER = {level: index for index, (_, level, _) in enumerate(ADDRESS_LEVELS)}


def import_reference_data(db: Session, payload: dict[str, Any]) -> dict[str, int]:
    """Upsert offices (by name) and PSGC locations (by code) from a JSON document."""
    offices_written = 0
    for item in payload.get("offices") or []:
        name = str(item["name"]).strip()
        office = db.scalar(select(Office).where(Office.name == name))
        if office is None:
            office = Office(name=name, abbreviation=str(item.get("abbreviation") or "").strip())
            db.add(office)
        else:
            office.abbreviation = str(item.get("abbreviation") or office.abbreviation).strip()
        offices_written += 1

    rows = sorted(payload.get("locations") or [], key=lambda item: _LEVEL_ORDER[LocationLevel(item["level"])])
    locations_written = 0
    current_level: LocationLevel | None = None
    for item in rows:
        level = LocationLevel(item["level"])
        if level != current_level:
            # Parents must be flushed before children reference them.
            db.flush()
            current_level = level
        code = str(item["code"]).strip()
        location = db.get(Location, code)
        if location is None:
            location = Location(code=code)
            db.add(location)
        location.name = str(item["name"]).strip()
        location.level = level
        location.parent_code = item.get("parent_code") or None
        locations_written += 1

    db.commit()
    return {"offices": offices_written, "locations": locations_written}
