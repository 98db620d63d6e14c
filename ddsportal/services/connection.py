import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import BackgroundTasks
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, col

from ddsportal.core.audit import _perform_audit_log
from ddsportal.core.config import settings
from ddsportal.core.exceptions import (
    ConflictError, ForbiddenError, NotFoundError, ValidationError
)
from ddsportal.db.schema import (
    AdminUser, AuditAction, Connection, EventDirection, Organisation, ReferenceEvent
)
from ddsportal.models.connection import (
    ConnectionCreate, ConnectionInfo, ConnectionRead, ConnectionUpdate,
    OrganisationCreate, OrganisationRead, ReferenceEventCreate, ReferenceEventRead,
    ReferenceEventSubmitted, ReferenceHistory
)
from ddsportal.utils import identifiers


def flip_direction(direction: EventDirection) -> EventDirection:
    if direction == EventDirection.SENT:
        return EventDirection.RECEIVED
    return EventDirection.SENT


class ConnectionService:
    """
    Admin <-> organisation pairings and the reference events exchanged over
    them. Stored direction labels are always from the organisation's side.
    """

    def __init__(self, session: Session):
        self.session = session

    def _to_read(self, conn: Connection, organisation: Organisation) -> ConnectionRead:
        return ConnectionRead(
            id=conn.id,
            organisation_id=conn.organisation_id,
            organisation_name=organisation.name,
            token=conn.token,
            is_active=conn.is_active,
            created_at=conn.created_at,
            last_used=conn.last_used
        )

    def _event_read(self, event: ReferenceEvent, direction: Optional[EventDirection] = None) -> ReferenceEventRead:
        return ReferenceEventRead(
            id=event.id,
            po_number=event.po_number,
            delivery_id=event.delivery_id,
            reference_number=event.reference_number,
            validation_number=event.validation_number,
            direction=direction or event.direction,
            submitted_by_email=event.submitted_by_email,
            submitted_at=event.submitted_at
        )

    def _get_owned(self, admin: AdminUser, connection_id: uuid.UUID):
        result = self.session.exec(
            select(Connection, Organisation)
            .join(Organisation, Connection.organisation_id == Organisation.id)
            .where(Connection.id == connection_id)
            .where(Connection.admin_user_id == admin.id)
        ).first()

        if not result:
            raise NotFoundError("Connection not found")
        return result

    def _token_exists(self, candidate: str) -> bool:
        return self.session.exec(
            select(Connection.id).where(Connection.token == candidate)
        ).first() is not None

    def _events(self, connection_id: uuid.UUID, direction: Optional[EventDirection]) -> List[ReferenceEvent]:
        statement = select(ReferenceEvent).where(ReferenceEvent.connection_id == connection_id)
        if direction:
            statement = statement.where(ReferenceEvent.direction == direction)
        statement = statement.order_by(col(ReferenceEvent.submitted_at).desc())
        return self.session.exec(statement).all()

    def _audit(self, background_tasks: Optional[BackgroundTasks], admin: AdminUser,
               conn: Connection, action: AuditAction, changes: dict):
        if background_tasks is None:
            return
        background_tasks.add_task(
            _perform_audit_log,
            actor_user_id=admin.id,
            entity_type="Connection",
            entity_id=conn.id,
            action=action,
            changes=changes
        )

    # ==========================================================================
    # ORGANISATIONS
    # ==========================================================================

    def list_organisations(self, query: Optional[str] = None) -> List[OrganisationRead]:
        statement = select(Organisation)
        if query:
            search_fmt = f"%{query}%"
            statement = statement.where(col(Organisation.name).ilike(search_fmt))

        statement = statement.order_by(col(Organisation.name).asc())
        return [
            OrganisationRead(id=o.id, name=o.name, created_at=o.created_at)
            for o in self.session.exec(statement).all()
        ]

    def create_organisation(self, data: OrganisationCreate) -> OrganisationRead:
        organisation = Organisation(name=data.name.strip())
        self.session.add(organisation)
        self.session.commit()
        self.session.refresh(organisation)

        logger.info(f"Organisation created: {organisation.id}")
        return OrganisationRead(
            id=organisation.id, name=organisation.name, created_at=organisation.created_at)

    # ==========================================================================
    # ADMIN ACTIONS
    # ==========================================================================

    def create_connection(
        self,
        admin: AdminUser,
        data: ConnectionCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ConnectionRead:
        """
        One connection per (admin, organisation). The pre-check gives a clean
        Conflict; the unique constraint settles concurrent creations.
        """
        organisation = self.session.get(Organisation, data.organisation_id)
        if not organisation:
            raise NotFoundError("Organisation not found")

        existing = self.session.exec(
            select(Connection)
            .where(Connection.admin_user_id == admin.id)
            .where(Connection.organisation_id == organisation.id)
        ).first()
        if existing:
            raise ConflictError("Connection already exists for this organisation")

        conn = Connection(
            admin_user_id=admin.id,
            organisation_id=organisation.id,
            token=identifiers.generate_unique(
                self._token_exists, max_attempts=settings.identifier_max_attempts),
            is_active=True
        )
        self.session.add(conn)

        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            logger.warning(f"Concurrent connection create for organisation {organisation.id}")
            raise ConflictError("Connection already exists for this organisation")

        self.session.refresh(conn)
        logger.info(f"Connection {conn.id} created for organisation {organisation.id}")

        self._audit(background_tasks, admin, conn, AuditAction.CREATE, {
            "organisation_id": str(organisation.id),
            "token": conn.token,
        })
        return self._to_read(conn, organisation)

    def list_connections(self, admin: AdminUser) -> List[ConnectionRead]:
        results = self.session.exec(
            select(Connection, Organisation)
            .join(Organisation, Connection.organisation_id == Organisation.id)
            .where(Connection.admin_user_id == admin.id)
            .order_by(col(Connection.created_at).desc())
        ).all()
        return [self._to_read(conn, organisation) for conn, organisation in results]

    def get_connection(self, admin: AdminUser, connection_id: uuid.UUID) -> ConnectionRead:
        conn, organisation = self._get_owned(admin, connection_id)
        return self._to_read(conn, organisation)

    def update_connection(
        self,
        admin: AdminUser,
        connection_id: uuid.UUID,
        data: ConnectionUpdate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ConnectionRead:
        conn, organisation = self._get_owned(admin, connection_id)
        old_active = conn.is_active

        conn.is_active = data.is_active
        self.session.add(conn)
        self.session.commit()
        self.session.refresh(conn)

        logger.info(f"Connection {conn.id} is_active {old_active} -> {conn.is_active}")
        self._audit(background_tasks, admin, conn, AuditAction.UPDATE, {
            "old_is_active": old_active,
            "new_is_active": conn.is_active,
        })
        return self._to_read(conn, organisation)

    def admin_submit(
        self,
        admin: AdminUser,
        connection_id: uuid.UUID,
        data: ReferenceEventCreate
    ) -> ReferenceEventSubmitted:
        """An admin pushes a reference to the organisation ('received' on their side)."""
        conn, organisation = self._get_owned(admin, connection_id)

        event = ReferenceEvent(
            connection_id=conn.id,
            po_number=data.po_number,
            delivery_id=data.delivery_id,
            reference_number=data.reference_number.strip(),
            validation_number=data.validation_number,
            direction=EventDirection.RECEIVED,
            submitted_by_email=admin.email
        )
        self.session.add(event)
        self.session.commit()
        self.session.refresh(event)

        return ReferenceEventSubmitted(
            reference=self._event_read(event), organisation=organisation.name)

    def admin_history(
        self,
        admin: AdminUser,
        connection_id: uuid.UUID,
        direction: Optional[EventDirection] = None
    ) -> ReferenceHistory:
        """
        With `admin_history_flip_direction` the labels (and the filter) are
        read from the admin's side: what the organisation sent, the admin
        received.
        """
        conn, organisation = self._get_owned(admin, connection_id)
        flip = settings.admin_history_flip_direction

        stored_direction = direction
        if direction and flip:
            stored_direction = flip_direction(direction)

        references = [
            self._event_read(event, flip_direction(event.direction) if flip else None)
            for event in self._events(conn.id, stored_direction)
        ]
        return ReferenceHistory(references=references, organisation=organisation.name)

    # ==========================================================================
    # ORGANISATION ACTIONS (keyed by connection token)
    # ==========================================================================

    def _get_by_token(self, token: str):
        if not identifiers.is_valid(token):
            raise ValidationError("Invalid connection token format")

        result = self.session.exec(
            select(Connection, Organisation)
            .join(Organisation, Connection.organisation_id == Organisation.id)
            .where(Connection.token == token)
        ).first()

        if not result:
            raise NotFoundError("Connection not found")
        return result

    def org_submit(self, token: str, data: ReferenceEventCreate) -> ReferenceEventSubmitted:
        conn, organisation = self._get_by_token(token)
        if not conn.is_active:
            raise ForbiddenError("Connection is not active")

        event = ReferenceEvent(
            connection_id=conn.id,
            po_number=data.po_number,
            delivery_id=data.delivery_id,
            reference_number=data.reference_number.strip(),
            validation_number=data.validation_number,
            direction=EventDirection.SENT,
            submitted_by_email=data.email
        )
        self.session.add(event)

        conn.last_used = datetime.utcnow()
        self.session.add(conn)
        self.session.commit()
        self.session.refresh(event)

        logger.info(f"Reference event {event.id} sent over connection {conn.id}")
        return ReferenceEventSubmitted(
            reference=self._event_read(event), organisation=organisation.name)

    def org_history(self, token: str, direction: Optional[EventDirection] = None) -> ReferenceHistory:
        conn, organisation = self._get_by_token(token)
        return ReferenceHistory(
            references=[self._event_read(e) for e in self._events(conn.id, direction)],
            organisation=organisation.name
        )

    def org_retrieve(self, token: str) -> ReferenceHistory:
        """References the admin pushed to the organisation."""
        return self.org_history(token, EventDirection.RECEIVED)

    def org_info(self, token: str) -> ConnectionInfo:
        conn, organisation = self._get_by_token(token)
        return ConnectionInfo(
            token=conn.token,
            organisation_name=organisation.name,
            is_active=conn.is_active,
            created_at=conn.created_at,
            last_used=conn.last_used
        )
