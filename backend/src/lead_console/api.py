from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from .ai_pause import TenantNotFoundError, toggle_ai_pause
from .calendar_events import CalendarEventCreator, HttpCalendarEventCreator, StubCalendarEventCreator
from .config import Settings, get_settings
from .contacts import ContactResolver, DefaultTenantPolicy, ensure_default_tenant, mask_whatsapp_address
from .lead_store import ContactRecord, LeadRepository, MessageRecord, ProfileRecord, StorageError, create_lead_repository
from .llm import ChatCompletionClient, ChatCompletionError, OpenAIChatCompletionClient, StubChatCompletionClient
from .models import (
    AiPauseStateResponse,
    AiPauseToggleResponse,
    CalendarConnectionRequest,
    CalendarConnectionResponse,
    ContactItem,
    ContactListResponse,
    ConversationDeleteResponse,
    ConversationResponse,
    HealthResponse,
    HumanMessageRequest,
    HumanMessageResponse,
    MessageItem,
    StatusCallbackResponse,
)
from .operator_tokens import OperatorTokenError, decode_operator_token
from .pipeline import ContactNotFoundError, InboundPipeline
from .reply_orchestrator import ReplyOrchestrator
from .webhook_security import verify_twilio_signature
from .whatsapp import GatewaySendError, StubWhatsAppGateway, TwilioWhatsAppGateway, WhatsAppGateway

logger = logging.getLogger(__name__)

_settings = get_settings()
router = APIRouter(prefix=f"{_settings.api_prefix}/console", tags=["console"])


def _create_lead_repo(settings: Settings) -> LeadRepository:
    return create_lead_repository(backend=settings.lead_store_backend, database_url=settings.database_url)


def _create_llm_client(settings: Settings) -> ChatCompletionClient:
    client_type = settings.llm_client_type.strip().lower()
    if client_type == "openai":
        return OpenAIChatCompletionClient(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            timeout_seconds=settings.openai_timeout_seconds,
        )
    if client_type == "stub":
        return StubChatCompletionClient()
    raise RuntimeError(f"unsupported LLM_CLIENT_TYPE: {settings.llm_client_type}")


def _create_calendar_creator(settings: Settings) -> CalendarEventCreator:
    creator_type = settings.calendar_creator_type.strip().lower()
    if creator_type == "http":
        return HttpCalendarEventCreator(
            base_url=settings.nylas_api_base_url,
            api_key=settings.nylas_api_key,
            timezone_name=settings.appointment_timezone,
            timeout_seconds=settings.nylas_timeout_seconds,
        )
    if creator_type == "stub":
        return StubCalendarEventCreator()
    raise RuntimeError(f"unsupported CALENDAR_CREATOR_TYPE: {settings.calendar_creator_type}")


def _create_gateway(settings: Settings) -> WhatsAppGateway:
    gateway_type = settings.whatsapp_gateway_type.strip().lower()
    if gateway_type == "twilio":
        return TwilioWhatsAppGateway(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_whatsapp_number,
            status_callback_url=settings.twilio_status_callback_url,
        )
    if gateway_type == "stub":
        return StubWhatsAppGateway(from_number=settings.twilio_whatsapp_number or "whatsapp:+14155238886")
    raise RuntimeError(f"unsupported WHATSAPP_GATEWAY_TYPE: {settings.whatsapp_gateway_type}")


lead_repo: LeadRepository = _create_lead_repo(_settings)
llm_client: ChatCompletionClient = _create_llm_client(_settings)
calendar_creator: CalendarEventCreator = _create_calendar_creator(_settings)
whatsapp_gateway: WhatsAppGateway = _create_gateway(_settings)
# Built on first use so importing the module never touches the database.
inbound_pipeline: InboundPipeline | None = None


def _build_pipeline() -> InboundPipeline:
    tenant = ensure_default_tenant(
        lead_repo,
        tenant_id=_settings.default_tenant_id,
        name=_settings.default_tenant_name,
    )
    return InboundPipeline(
        repository=lead_repo,
        resolver=ContactResolver(lead_repo, DefaultTenantPolicy(tenant.tenant_id)),
        orchestrator=ReplyOrchestrator(
            repository=lead_repo,
            llm_client=llm_client,
            calendar_creator=calendar_creator,
        ),
        gateway=whatsapp_gateway,
        history_limit=_settings.conversation_history_limit,
        business_persona=_settings.business_persona,
    )


def _pipeline() -> InboundPipeline:
    global inbound_pipeline
    if inbound_pipeline is None:
        inbound_pipeline = _build_pipeline()
    return inbound_pipeline


def reset_runtime_state_for_tests() -> None:
    global inbound_pipeline
    lead_repo.reset()
    inbound_pipeline = None


def _require_operator(request: Request) -> ProfileRecord:
    token = request.headers.get("Authorization", "").removeprefix("Bearer ").strip()
    if not token:
        raise HTTPException(401, "operator session required")
    try:
        payload = decode_operator_token(token, secret=_settings.operator_session_secret)
    except OperatorTokenError as exc:
        raise HTTPException(401, str(exc)) from exc
    try:
        profile = lead_repo.get_profile(payload.user_id)
    except StorageError as exc:
        logger.exception("profile lookup failed")
        raise HTTPException(500, "Database error") from exc
    if profile is None:
        raise HTTPException(404, "profile not found")
    return profile


def _contact_item(contact: ContactRecord) -> ContactItem:
    return ContactItem(
        contact_id=contact.contact_id,
        whatsapp_address=contact.whatsapp_address,
        display_name=contact.display_name,
        last_message_at=contact.last_message_at,
        created_at=contact.created_at,
        updated_at=contact.updated_at,
    )


def _message_item(message: MessageRecord) -> MessageItem:
    return MessageItem(
        message_id=message.message_id,
        contact_id=message.contact_id,
        role=message.role,
        body=message.body,
        provider_message_id=message.provider_message_id,
        provider_status=message.provider_status,
        created_at=message.created_at,
    )


async def _verified_form(request: Request) -> tuple[dict[str, str], Response | None]:
    form = await request.form()
    form_data = {key: str(value) for key, value in form.items()}
    verification = verify_twilio_signature(
        settings=_settings,
        url=str(request.url),
        form_data=form_data,
        headers=request.headers,
    )
    if not verification.verified:
        logger.warning("twilio webhook signature not verified: %s", verification.reason)
        if _settings.whatsapp_webhook_signature_mode == "enforce":
            return form_data, PlainTextResponse("Invalid signature", status_code=status.HTTP_401_UNAUTHORIZED)
    return form_data, None


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(ok=True)


@router.post("/webhooks/twilio/inbound", status_code=status.HTTP_204_NO_CONTENT)
async def twilio_inbound(request: Request) -> Response:
    form_data, rejection = await _verified_form(request)
    if rejection is not None:
        return rejection

    from_address = form_data.get("From", "").strip()
    if not from_address:
        return PlainTextResponse("Missing From parameter", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        pipeline = _pipeline()
        await run_in_threadpool(
            pipeline.handle_inbound,
            from_address=from_address,
            body=form_data.get("Body", ""),
            message_sid=form_data.get("MessageSid"),
        )
    except StorageError:
        logger.exception("inbound message from %s failed on storage", mask_whatsapp_address(from_address))
        return PlainTextResponse("Database error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except ChatCompletionError as exc:
        logger.exception("inbound message from %s failed on llm: %s", mask_whatsapp_address(from_address), exc.error_code)
        return PlainTextResponse("AI service error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except GatewaySendError as exc:
        logger.exception("reply to %s failed on gateway: %s", mask_whatsapp_address(from_address), exc.error_code)
        return PlainTextResponse("Messaging service error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/webhooks/twilio/status", response_model=StatusCallbackResponse)
async def twilio_status(request: Request) -> Response | StatusCallbackResponse:
    form_data, rejection = await _verified_form(request)
    if rejection is not None:
        return rejection

    message_sid = form_data.get("MessageSid", "").strip()
    message_status = form_data.get("MessageStatus", "").strip()
    if not message_sid or not message_status:
        return PlainTextResponse("Missing MessageSid or MessageStatus", status_code=status.HTTP_400_BAD_REQUEST)

    try:
        updated = await run_in_threadpool(
            _pipeline().handle_status_callback,
            message_sid=message_sid,
            status=message_status,
        )
    except StorageError:
        logger.exception("status callback for %s failed on storage", message_sid)
        return PlainTextResponse("Database error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return StatusCallbackResponse(success=True, updated=updated, message_sid=message_sid, status=message_status)


@router.post("/ai-pause/toggle", response_model=AiPauseToggleResponse)
def ai_pause_toggle(request: Request) -> AiPauseToggleResponse:
    profile = _require_operator(request)
    try:
        result = toggle_ai_pause(lead_repo, profile.tenant_id)
    except TenantNotFoundError as exc:
        raise HTTPException(404, "organization not found") from exc
    except StorageError as exc:
        logger.exception("ai pause toggle failed for tenant %s", profile.tenant_id)
        raise HTTPException(500, "Database error") from exc
    return AiPauseToggleResponse(ai_paused=result.ai_paused, message=result.message)


@router.get("/ai-pause", response_model=AiPauseStateResponse)
def ai_pause_state(request: Request) -> AiPauseStateResponse:
    profile = _require_operator(request)
    try:
        tenant = lead_repo.get_tenant(profile.tenant_id)
    except StorageError as exc:
        logger.exception("ai pause lookup failed for tenant %s", profile.tenant_id)
        raise HTTPException(500, "Database error") from exc
    if tenant is None:
        raise HTTPException(404, "organization not found")
    return AiPauseStateResponse(tenant_id=tenant.tenant_id, ai_paused=tenant.ai_paused)


@router.get("/contacts", response_model=ContactListResponse)
def list_contacts(request: Request, limit: int = Query(default=100, ge=1, le=500)) -> ContactListResponse:
    profile = _require_operator(request)
    try:
        contacts = lead_repo.list_contacts(profile.tenant_id, limit=limit)
    except StorageError as exc:
        logger.exception("contact listing failed for tenant %s", profile.tenant_id)
        raise HTTPException(500, "Database error") from exc
    return ContactListResponse(items=[_contact_item(contact) for contact in contacts])


@router.get("/contacts/{contact_id}/messages", response_model=ConversationResponse)
def get_conversation(
    contact_id: str,
    request: Request,
    limit: int = Query(default=200, ge=1, le=1000),
) -> ConversationResponse:
    profile = _require_operator(request)
    try:
        contact, messages = _pipeline().conversation(tenant_id=profile.tenant_id, contact_id=contact_id, limit=limit)
    except ContactNotFoundError as exc:
        raise HTTPException(404, "contact not found") from exc
    except StorageError as exc:
        logger.exception("conversation lookup for contact %s failed", contact_id)
        raise HTTPException(500, "Database error") from exc
    return ConversationResponse(
        contact=_contact_item(contact),
        messages=[_message_item(message) for message in messages],
    )


@router.post("/contacts/{contact_id}/messages", response_model=HumanMessageResponse)
def send_human_message(contact_id: str, payload: HumanMessageRequest, request: Request) -> HumanMessageResponse:
    profile = _require_operator(request)
    try:
        result = _pipeline().send_human_reply(tenant_id=profile.tenant_id, contact_id=contact_id, text=payload.text)
    except ContactNotFoundError as exc:
        raise HTTPException(404, "contact not found") from exc
    except StorageError as exc:
        logger.exception("human message for contact %s failed on storage", contact_id)
        raise HTTPException(500, "Database error") from exc
    except GatewaySendError as exc:
        logger.exception("human message for contact %s failed on gateway: %s", contact_id, exc.error_code)
        raise HTTPException(500, "Messaging service error") from exc
    return HumanMessageResponse(
        success=True,
        message_id=result.message.message_id,
        provider_message_id=result.provider_message_id,
    )


@router.delete("/contacts/{contact_id}/messages", response_model=ConversationDeleteResponse)
def delete_conversation(contact_id: str, request: Request) -> ConversationDeleteResponse:
    profile = _require_operator(request)
    try:
        deleted = _pipeline().delete_conversation(tenant_id=profile.tenant_id, contact_id=contact_id)
    except ContactNotFoundError as exc:
        raise HTTPException(404, "contact not found") from exc
    except StorageError as exc:
        logger.exception("conversation delete for contact %s failed", contact_id)
        raise HTTPException(500, "Database error") from exc
    return ConversationDeleteResponse(
        contact_id=contact_id,
        deleted_count=deleted,
        message="Conversation deleted successfully",
    )


@router.put("/calendar/connection", response_model=CalendarConnectionResponse)
def connect_calendar(payload: CalendarConnectionRequest, request: Request) -> CalendarConnectionResponse:
    profile = _require_operator(request)
    try:
        grant = lead_repo.save_calendar_grant(
            tenant_id=profile.tenant_id,
            user_id=profile.user_id,
            grant_id=payload.grant_id,
            default_calendar_id=(payload.default_calendar_id or "").strip() or None,
        )
    except StorageError as exc:
        logger.exception("calendar connection for %s failed", profile.user_id)
        raise HTTPException(500, "Database error") from exc
    return CalendarConnectionResponse(
        tenant_id=grant.tenant_id,
        user_id=grant.user_id,
        grant_id=grant.grant_id,
        default_calendar_id=grant.default_calendar_id,
        connected=grant.connected,
    )


@router.delete("/calendar/connection", response_model=CalendarConnectionResponse)
def disconnect_calendar(request: Request) -> CalendarConnectionResponse:
    profile = _require_operator(request)
    try:
        lead_repo.disconnect_calendar_grant(user_id=profile.user_id)
    except StorageError as exc:
        logger.exception("calendar disconnect for %s failed", profile.user_id)
        raise HTTPException(500, "Database error") from exc
    return CalendarConnectionResponse(
        tenant_id=profile.tenant_id,
        user_id=profile.user_id,
        grant_id=None,
        default_calendar_id=None,
        connected=False,
    )
