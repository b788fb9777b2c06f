from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .lead_store import ContactRecord, LeadRepository, TenantRecord

logger = logging.getLogger(__name__)

WHATSAPP_SCHEME = "whatsapp:"


class TenantAssignmentPolicy(Protocol):
    def tenant_for_new_contact(self, whatsapp_address: str) -> str: ...


class DefaultTenantPolicy:
    """Assigns every unknown sender to one tenant resolved at startup."""

    def __init__(self, tenant_id: str) -> None:
        if not tenant_id.strip():
            raise ValueError("tenant_id must not be empty")
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def tenant_for_new_contact(self, whatsapp_address: str) -> str:
        return self._tenant_id


def ensure_default_tenant(repository: LeadRepository, *, tenant_id: str, name: str) -> TenantRecord:
    configured = tenant_id.strip()
    if configured:
        tenant = repository.get_tenant(configured)
        if tenant is not None:
            return tenant
        logger.warning("configured default tenant %s not found, falling back", configured)

    tenant = repository.first_tenant()
    if tenant is not None:
        return tenant

    created = repository.create_tenant(name=name, tenant_id=configured or None)
    logger.info("created default tenant %s (%s)", created.tenant_id, created.name)
    return created


def strip_whatsapp_scheme(whatsapp_address: str) -> str:
    normalized = whatsapp_address.strip()
    if normalized.lower().startswith(WHATSAPP_SCHEME):
        return normalized[len(WHATSAPP_SCHEME):]
    return normalized


def mask_whatsapp_address(whatsapp_address: str) -> str:
    digits = "".join(ch for ch in whatsapp_address if ch.isdigit())
    if len(digits) >= 4:
        return f"***{digits[-4:]}"
    return "***"


def next_activity_timestamp(previous: datetime | None, now: datetime) -> datetime:
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class ContactResolver:
    def __init__(self, repository: LeadRepository, policy: TenantAssignmentPolicy) -> None:
        self._repository = repository
        self._policy = policy

    def resolve(self, whatsapp_address: str, *, now: datetime | None = None) -> ContactRecord:
        """Return the contact for a sender address, creating it on first contact.

        ``last_message_at`` is bumped on every call and never moves backwards.
        """
        address = whatsapp_address.strip()
        if not address:
            raise ValueError("whatsapp_address must not be empty")
        current_time = now or datetime.now(timezone.utc)

        existing = self._repository.find_contact_by_address(address)
        if existing is not None:
            return self._repository.touch_contact(
                existing.contact_id,
                last_message_at=next_activity_timestamp(existing.last_message_at, current_time),
            )

        tenant_id = self._policy.tenant_for_new_contact(address)
        contact = self._repository.create_contact(
            tenant_id=tenant_id,
            whatsapp_address=address,
            display_name=strip_whatsapp_scheme(address),
            last_message_at=current_time,
        )
        logger.info(
            "created contact %s for %s in tenant %s",
            contact.contact_id,
            mask_whatsapp_address(address),
            tenant_id,
        )
        return contact
