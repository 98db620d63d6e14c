import uuid
from datetime import datetime
from typing import Optional

from fastapi import BackgroundTasks
from loguru import logger
from sqlmodel import Session, select, col, func

from ddsportal.core.audit import _perform_audit_log
from ddsportal.core.exceptions import ConflictError, DeliveryError, NotFoundError
from ddsportal.db.schema import (
    AdminSupplierLink, AdminUser, AuditAction, LinkState,
    SupplierDirectActivation, SupplierLink
)
from ddsportal.models.admin import (
    AdminSupplierLinkRead, DirectActivationRead, LinkList, SupplierLinkCreate
)
from ddsportal.services.email import EmailService
from ddsportal.services.supplier_auth import encode_bypass_credential
from ddsportal.services.supplier_link import SupplierLinkService, supplier_url

DEFAULT_ACTIVATION_NOTE = "Directly activated by admin"


class LinkService:
    """
    Admin-side lifecycle of supplier links: Pending -> Active -> Frozen.

    Every transition keeps the target SupplierLink in step:
    `state != Frozen` <=> `SupplierLink.is_active`.
    """

    def __init__(self, session: Session, email_service: EmailService):
        self.session = session
        self.email_service = email_service
        self.links = SupplierLinkService(session)

    def _get_admin_link(self, link_id: uuid.UUID) -> AdminSupplierLink:
        admin_link = self.session.get(AdminSupplierLink, link_id)
        if not admin_link:
            raise NotFoundError("Link not found")
        return admin_link

    def _set_supplier_active(self, supplier_link_id: str, is_active: bool):
        supplier_link = self.session.get(SupplierLink, supplier_link_id)
        if supplier_link:
            supplier_link.is_active = is_active
            self.session.add(supplier_link)

    def _audit(
        self,
        background_tasks: Optional[BackgroundTasks],
        admin: Optional[AdminUser],
        admin_link: AdminSupplierLink,
        changes: dict
    ):
        if background_tasks is None:
            return
        background_tasks.add_task(
            _perform_audit_log,
            actor_user_id=admin.id if admin else None,
            entity_type="AdminSupplierLink",
            entity_id=admin_link.id,
            action=AuditAction.UPDATE,
            changes=changes
        )

    def generate_link(self, data: SupplierLinkCreate) -> AdminSupplierLink:
        """
        Always creates a fresh Pending grant. The supplier link itself is
        reused when one already exists for the email.
        """
        supplier_link = self.links.find_by_identifier(data.supplier_email)

        if supplier_link:
            supplier_link.is_active = True
            self.session.add(supplier_link)
            logger.info(f"Reusing supplier link {supplier_link.id} for new grant")
        else:
            supplier_link = self.links.create_supplier_link(data.supplier_email, commit=False)

        admin_link = AdminSupplierLink(
            shared_with=data.supplier_email,
            supplier_link_id=supplier_link.id,
            url=supplier_url(supplier_link.id),
            state=LinkState.PENDING,
            valid_until=data.valid_until,
            supplier_name=data.supplier_name,
            admin_notes=data.admin_notes
        )
        self.session.add(admin_link)
        self.session.commit()
        self.session.refresh(admin_link)

        logger.info(f"Generated admin link {admin_link.id} -> {admin_link.supplier_link_id}")

        # Link generation never fails on email delivery
        try:
            self.email_service.send(
                data.supplier_email,
                "supplier_link",
                {"url": admin_link.url, "valid_until": admin_link.valid_until}
            )
        except DeliveryError:
            logger.warning(f"Supplier link email not delivered for admin link {admin_link.id}")

        return admin_link

    def list_links(self, offset: int = 0, limit: int = 100) -> LinkList:
        links = self.session.exec(
            select(AdminSupplierLink)
            .order_by(col(AdminSupplierLink.created_on).desc())
            .offset(offset)
            .limit(limit)
        ).all()
        total = self.session.exec(select(func.count(AdminSupplierLink.id))).one()

        return LinkList(
            links=[AdminSupplierLinkRead.model_validate(link) for link in links],
            total_items=total
        )

    def get_link(self, link_id: uuid.UUID) -> AdminSupplierLink:
        return self._get_admin_link(link_id)

    def set_state(
        self,
        link_id: uuid.UUID,
        state: LinkState,
        admin: Optional[AdminUser] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> AdminSupplierLink:
        admin_link = self._get_admin_link(link_id)
        old_state = admin_link.state

        admin_link.state = state
        self.session.add(admin_link)
        self._set_supplier_active(admin_link.supplier_link_id, state != LinkState.FROZEN)

        self.session.commit()
        self.session.refresh(admin_link)

        logger.info(f"Admin link {link_id} state {old_state.value} -> {state.value}")
        self._audit(background_tasks, admin, admin_link, {
            "type": "set_state",
            "old_state": old_state.value,
            "new_state": state.value,
        })
        return admin_link

    def freeze(
        self,
        link_id: uuid.UUID,
        admin: Optional[AdminUser] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> AdminSupplierLink:
        """Soft delete. The record stays because submissions still reference the link."""
        return self.set_state(link_id, LinkState.FROZEN, admin, background_tasks)

    def direct_activate(
        self,
        link_id: uuid.UUID,
        admin_notes: Optional[str] = None,
        admin: Optional[AdminUser] = None,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> DirectActivationRead:
        """
        Activates without an OTP round trip and returns the bypass credential.
        Only reachable by an authenticated admin.
        """
        admin_link = self._get_admin_link(link_id)
        if admin_link.state == LinkState.ACTIVE:
            raise ConflictError("Link is already active")

        old_state = admin_link.state
        admin_link.state = LinkState.ACTIVE
        admin_link.admin_notes = admin_notes or admin_link.admin_notes
        self.session.add(admin_link)
        self._set_supplier_active(admin_link.supplier_link_id, True)

        self.session.add(SupplierDirectActivation(
            supplier_link_id=admin_link.supplier_link_id,
            activated_by_admin="admin",
            activated_at=datetime.utcnow(),
            admin_notes=admin_notes or DEFAULT_ACTIVATION_NOTE
        ))
        self.session.commit()
        self.session.refresh(admin_link)

        logger.info(f"Admin link {link_id} directly activated (was {old_state.value})")
        self._audit(background_tasks, admin, admin_link, {
            "type": "direct_activate",
            "old_state": old_state.value,
            "new_state": LinkState.ACTIVE.value,
        })

        return DirectActivationRead(
            link=AdminSupplierLinkRead.model_validate(admin_link),
            supplier_link_id=admin_link.supplier_link_id,
            token=encode_bypass_credential(admin_link.supplier_link_id)
        )
