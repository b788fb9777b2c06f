from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .ai_pause import TenantNotFoundError, is_ai_paused
from .contacts import ContactResolver, mask_whatsapp_address, next_activity_timestamp
from .conversation_context import build_conversation_context
from .lead_store import ContactRecord, LeadRepository, MessageRecord, StorageError
from .reply_orchestrator import ReplyOrchestrator, ReplyOutcome
from .whatsapp import WhatsAppGateway

logger = logging.getLogger(__name__)


class ContactNotFoundError(LookupError):
    """Raised when an operator addresses a contact outside their tenant."""


@dataclass(frozen=True)
class InboundResult:
    contact_id: str
    tenant_id: str
    inbound_message_id: int
    ai_paused: bool
    outcome: ReplyOutcome | None = None
    agent_message_id: int | None = None
    provider_message_id: str | None = None


@dataclass(frozen=True)
class HumanReplyResult:
    message: MessageRecord
    provider_message_id: str


class InboundPipeline:
    """Runs one inbound WhatsApp message through store, gate, model and gateway.

    Errors from storage, the model client and the gateway propagate to the
    caller unchanged; nothing already written is rolled back.
    """

    def __init__(
        self,
        *,
        repository: LeadRepository,
        resolver: ContactResolver,
        orchestrator: ReplyOrchestrator,
        gateway: WhatsAppGateway,
        history_limit: int = 10,
        business_persona: str = "",
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._orchestrator = orchestrator
        self._gateway = gateway
        self._history_limit = max(0, history_limit)
        self._business_persona = business_persona

    def handle_inbound(self, *, from_address: str, body: str, message_sid: str | None = None) -> InboundResult:
        contact = self._resolver.resolve(from_address)
        inbound = self._repository.append_message(
            tenant_id=contact.tenant_id,
            contact_id=contact.contact_id,
            role="user",
            body=body,
            provider_message_id=(message_sid or "").strip() or None,
        )

        try:
            paused = is_ai_paused(self._repository, contact.tenant_id)
        except TenantNotFoundError as exc:
            raise StorageError(f"tenant not found: {contact.tenant_id}") from exc
        if paused:
            logger.info("ai paused for tenant %s, skipping reply", contact.tenant_id)
            return InboundResult(
                contact_id=contact.contact_id,
                tenant_id=contact.tenant_id,
                inbound_message_id=inbound.message_id,
                ai_paused=True,
            )

        history = self._repository.list_messages(contact.contact_id, limit=self._history_limit)
        context = build_conversation_context(
            history,
            body,
            contact_name=contact.display_name,
            business_persona=self._business_persona,
        )
        outcome = self._orchestrator.generate_reply(tenant_id=contact.tenant_id, contact=contact, context=context)
        logger.info(
            "reply branch=%s for %s",
            outcome.branch,
            mask_whatsapp_address(contact.whatsapp_address),
        )

        sent = self._gateway.send_message(to=contact.whatsapp_address, body=outcome.reply_text)
        agent = self._repository.append_message(
            tenant_id=contact.tenant_id,
            contact_id=contact.contact_id,
            role="agent",
            body=outcome.reply_text,
            provider_message_id=sent.provider_message_id,
        )
        return InboundResult(
            contact_id=contact.contact_id,
            tenant_id=contact.tenant_id,
            inbound_message_id=inbound.message_id,
            ai_paused=False,
            outcome=outcome,
            agent_message_id=agent.message_id,
            provider_message_id=sent.provider_message_id,
        )

    def handle_status_callback(self, *, message_sid: str, status: str) -> bool:
        updated = self._repository.update_delivery_status(provider_message_id=message_sid, status=status)
        if not updated:
            logger.info("status callback for unknown message sid %s ignored", message_sid)
        return updated

    def _tenant_contact(self, tenant_id: str, contact_id: str) -> ContactRecord:
        contact = self._repository.get_contact(contact_id)
        if contact is None or contact.tenant_id != tenant_id:
            raise ContactNotFoundError(contact_id)
        return contact

    def send_human_reply(self, *, tenant_id: str, contact_id: str, text: str) -> HumanReplyResult:
        contact = self._tenant_contact(tenant_id, contact_id)
        message = self._repository.append_message(
            tenant_id=tenant_id,
            contact_id=contact.contact_id,
            role="human",
            body=text,
        )
        sent = self._gateway.send_message(to=contact.whatsapp_address, body=text)
        self._repository.set_provider_message_id(message.message_id, sent.provider_message_id)
        self._repository.touch_contact(
            contact.contact_id,
            last_message_at=next_activity_timestamp(contact.last_message_at, datetime.now(timezone.utc)),
        )
        return HumanReplyResult(message=message, provider_message_id=sent.provider_message_id)

    def delete_conversation(self, *, tenant_id: str, contact_id: str) -> int:
        contact = self._tenant_contact(tenant_id, contact_id)
        deleted = self._repository.delete_messages(contact.contact_id)
        logger.info("deleted %s messages for contact %s", deleted, contact.contact_id)
        return deleted

    def conversation(self, *, tenant_id: str, contact_id: str, limit: int) -> tuple[ContactRecord, list[MessageRecord]]:
        contact = self._tenant_contact(tenant_id, contact_id)
        return contact, self._repository.list_messages(contact.contact_id, limit=limit)
