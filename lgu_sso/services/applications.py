from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lgu_sso.audit import AuditContext, application_ref, record_audit
from lgu_sso.errors import InternalError, NotFound
from lgu_sso.models import Application, AuditAction
from lgu_sso.schemas import ApplicationCreate, ApplicationUpdate
from lgu_sso.security import hash_password
from lgu_sso.services import credentials
from lgu_sso.settings import get_settings

logger = logging.getLogger("lgu_sso.applications")


def get_application(db: Session, application_uuid: UUID) -> Application:
    application = db.get(Application, application_uuid)
    if application is None:
        raise NotFound("Application not found.")
    return application


def list_applications(db: Session) -> list[Application]:
    stmt = select(Application).order_by(Application.created_at.desc(), Application.name.asc())
    return list(db.scalars(stmt).all())


def create_application(
    db: Session,
    payload: ApplicationCreate,
    *,
    context: AuditContext | None = None,
) -> tuple[Application, str]:
    """Register a client application and return it with its one-time plaintext secret."""
    client_secret = credentials.generate_client_secret()
    secret_hash = hash_password(client_secret)
    max_attempts = max(1, get_settings().client_id_max_attempts)

    for attempt in range(1, max_attempts + 1):
        client_id = credentials.generate_client_id(payload.name)
        taken = db.scalar(select(Application.uuid).where(Application.client_id == client_id))
        if taken is not None:
            logger.warning("client_id_collision", extra={"client_id": client_id, "attempt": attempt})
            continue

        application = Application(
            name=payload.name.strip(),
            description=payload.description.strip() if payload.description else None,
            client_id=client_id,
            client_secret_hash=secret_hash,
            redirect_uris=list(payload.redirect_uris),
            rate_limit_per_minute=payload.rate_limit_per_minute,
            is_active=True,
        )
        db.add(application)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("client_id_collision", extra={"client_id": client_id, "attempt": attempt})
            continue

        db.refresh(application)
        record_audit(
            db,
            AuditAction.APPLICATION_CREATED,
            context=context,
            application=application,
            metadata={"client_id": application.client_id},
        )
        return application, client_secret

    logger.error("client_id_generation_exhausted", extra={"attempts": max_attempts, "application_name": payload.name})
    raise InternalError("Could not allocate a unique client_id.")


def update_application(
    db: Session,
    application_uuid: UUID,
    payload: ApplicationUpdate,
    *,
    context: AuditContext | None = None,
) -> Application:
    application = get_application(db, application_uuid)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("name") is not None:
        application.name = changes["name"].strip()
    if "description" in changes:
        description = changes["description"]
        application.description = description.strip() if description else None
    if changes.get("redirect_uris") is not None:
        application.redirect_uris = list(changes["redirect_uris"])
    if changes.get("rate_limit_per_minute") is not None:
        application.rate_limit_per_minute = changes["rate_limit_per_minute"]
    if changes.get("is_active") is not None:
        application.is_active = changes["is_active"]

    db.commit()
    db.refresh(application)

    record_audit(
        db,
        AuditAction.APPLICATION_UPDATED,
        context=context,
        application=application,
        metadata={"changed": sorted(changes)},
    )
    return application


def delete_application(db: Session, application_uuid: UUID, *, context: AuditContext | None = None) -> None:
    application = get_application(db, application_uuid)
    subject = application_ref(application)
    client_id = application.client_id
    revoked_grants = len(application.grants)

    # Grants go in the same commit through the ORM cascade and ON DELETE CASCADE.
    db.delete(application)
    db.commit()

    record_audit(
        db,
        AuditAction.APPLICATION_DELETED,
        context=context,
        application=subject,
        metadata={"client_id": client_id, "revoked_grants": revoked_grants},
    )
