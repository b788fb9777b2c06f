from __future__ import annotations

import logging
from dataclasses import dataclass

from .lead_store import LeadRepository

logger = logging.getLogger(__name__)

PAUSED_MESSAGE = "AI agent gepauzeerd"
RESUMED_MESSAGE = "AI agent geactiveerd"


class TenantNotFoundError(LookupError):
    """Raised when the tenant behind a pause check or toggle does not exist."""


@dataclass(frozen=True)
class AiPauseToggleResult:
    tenant_id: str
    ai_paused: bool
    message: str


def is_ai_paused(repository: LeadRepository, tenant_id: str) -> bool:
    tenant = repository.get_tenant(tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)
    return tenant.ai_paused


def toggle_ai_pause(repository: LeadRepository, tenant_id: str) -> AiPauseToggleResult:
    tenant = repository.get_tenant(tenant_id)
    if tenant is None:
        raise TenantNotFoundError(tenant_id)

    updated = repository.set_ai_paused(tenant_id, paused=not tenant.ai_paused)
    logger.info("tenant %s ai_paused=%s", tenant_id, updated.ai_paused)
    return AiPauseToggleResult(
        tenant_id=tenant_id,
        ai_paused=updated.ai_paused,
        message=PAUSED_MESSAGE if updated.ai_paused else RESUMED_MESSAGE,
    )
