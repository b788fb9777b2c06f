from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from itertools import count
from threading import Lock
from typing import Iterator, Protocol
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from .models import MessageRole


class StorageError(RuntimeError):
    """Raised when the lead store rejects an insert or update."""


@dataclass(frozen=True)
class TenantRecord:
    tenant_id: str
    name: str
    ai_paused: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ContactRecord:
    contact_id: str
    tenant_id: str
    whatsapp_address: str
    display_name: str | None
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class MessageRecord:
    message_id: int
    tenant_id: str
    contact_id: str
    role: MessageRole
    body: str | None
    provider_message_id: str | None
    provider_status: str | None
    created_at: datetime


@dataclass(frozen=True)
class ProfileRecord:
    user_id: str
    tenant_id: str
    display_name: str | None
    created_at: datetime


@dataclass(frozen=True)
class CalendarGrantRecord:
    user_id: str
    tenant_id: str
    grant_id: str | None
    default_calendar_id: str | None
    connected: bool
    updated_at: datetime


class LeadRepository(Protocol):
    def reset(self) -> None: ...

    def create_tenant(self, *, name: str, tenant_id: str | None = None) -> TenantRecord: ...

    def get_tenant(self, tenant_id: str) -> TenantRecord | None: ...

    def first_tenant(self) -> TenantRecord | None: ...

    def set_ai_paused(self, tenant_id: str, *, paused: bool) -> TenantRecord: ...

    def find_contact_by_address(self, whatsapp_address: str) -> ContactRecord | None: ...

    def get_contact(self, contact_id: str) -> ContactRecord | None: ...

    def create_contact(
        self,
        *,
        tenant_id: str,
        whatsapp_address: str,
        display_name: str | None,
        last_message_at: datetime,
    ) -> ContactRecord: ...

    def touch_contact(self, contact_id: str, *, last_message_at: datetime) -> ContactRecord: ...

    def list_contacts(self, tenant_id: str, *, limit: int) -> list[ContactRecord]: ...

    def append_message(
        self,
        *,
        tenant_id: str,
        contact_id: str,
        role: MessageRole,
        body: str | None,
        provider_message_id: str | None = None,
    ) -> MessageRecord: ...

    def list_messages(self, contact_id: str, *, limit: int) -> list[MessageRecord]: ...

    def set_provider_message_id(self, message_id: int, provider_message_id: str) -> None: ...

    def update_delivery_status(self, *, provider_message_id: str, status: str) -> bool: ...

    def delete_messages(self, contact_id: str) -> int: ...

    def upsert_profile(self, *, user_id: str, tenant_id: str, display_name: str | None = None) -> ProfileRecord: ...

    def get_profile(self, user_id: str) -> ProfileRecord | None: ...

    def save_calendar_grant(
        self,
        *,
        tenant_id: str,
        user_id: str,
        grant_id: str,
        default_calendar_id: str | None,
    ) -> CalendarGrantRecord: ...

    def disconnect_calendar_grant(self, *, user_id: str) -> bool: ...

    def find_calendar_grant(self, tenant_id: str) -> CalendarGrantRecord | None: ...


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class InMemoryLeadRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._tenant_counter = count(1)
        self._contact_counter = count(1)
        self._message_counter = count(1)
        self._tenants: dict[str, TenantRecord] = {}
        self._contacts: dict[str, ContactRecord] = {}
        self._messages: dict[int, MessageRecord] = {}
        self._profiles: dict[str, ProfileRecord] = {}
        self._grants: dict[str, CalendarGrantRecord] = {}

    def reset(self) -> None:
        with self._lock:
            self._tenant_counter = count(1)
            self._contact_counter = count(1)
            self._message_counter = count(1)
            self._tenants.clear()
            self._contacts.clear()
            self._messages.clear()
            self._profiles.clear()
            self._grants.clear()

    def create_tenant(self, *, name: str, tenant_id: str | None = None) -> TenantRecord:
        with self._lock:
            new_id = tenant_id or f"tenant_{next(self._tenant_counter):06d}"
            if new_id in self._tenants:
                raise StorageError(f"tenant already exists: {new_id}")
            now = _now_utc()
            tenant = TenantRecord(tenant_id=new_id, name=name, ai_paused=False, created_at=now, updated_at=now)
            self._tenants[new_id] = tenant
            return tenant

    def get_tenant(self, tenant_id: str) -> TenantRecord | None:
        return self._tenants.get(tenant_id)

    def first_tenant(self) -> TenantRecord | None:
        with self._lock:
            tenants = list(self._tenants.values())
        if not tenants:
            return None
        return min(tenants, key=lambda value: value.created_at)

    def set_ai_paused(self, tenant_id: str, *, paused: bool) -> TenantRecord:
        with self._lock:
            current = self._tenants.get(tenant_id)
            if current is None:
                raise StorageError(f"tenant not found: {tenant_id}")
            updated = replace(current, ai_paused=paused, updated_at=_now_utc())
            self._tenants[tenant_id] = updated
            return updated

    def find_contact_by_address(self, whatsapp_address: str) -> ContactRecord | None:
        with self._lock:
            matches = [value for value in self._contacts.values() if value.whatsapp_address == whatsapp_address]
        if not matches:
            return None
        return max(matches, key=lambda value: value.last_message_at or value.created_at)

    def get_contact(self, contact_id: str) -> ContactRecord | None:
        return self._contacts.get(contact_id)

    def create_contact(
        self,
        *,
        tenant_id: str,
        whatsapp_address: str,
        display_name: str | None,
        last_message_at: datetime,
    ) -> ContactRecord:
        with self._lock:
            if tenant_id not in self._tenants:
                raise StorageError(f"tenant not found: {tenant_id}")
            for existing in self._contacts.values():
                if existing.tenant_id == tenant_id and existing.whatsapp_address == whatsapp_address:
                    raise StorageError(f"contact already exists for {tenant_id}")
            now = _now_utc()
            contact = ContactRecord(
                contact_id=f"contact_{next(self._contact_counter):06d}",
                tenant_id=tenant_id,
                whatsapp_address=whatsapp_address,
                display_name=display_name,
                last_message_at=last_message_at,
                created_at=now,
                updated_at=now,
            )
            self._contacts[contact.contact_id] = contact
            return contact

    def touch_contact(self, contact_id: str, *, last_message_at: datetime) -> ContactRecord:
        with self._lock:
            current = self._contacts.get(contact_id)
            if current is None:
                raise StorageError(f"contact not found: {contact_id}")
            updated = replace(current, last_message_at=last_message_at, updated_at=_now_utc())
            self._contacts[contact_id] = updated
            return updated

    def list_contacts(self, tenant_id: str, *, limit: int) -> list[ContactRecord]:
        with self._lock:
            contacts = [value for value in self._contacts.values() if value.tenant_id == tenant_id]
        contacts.sort(key=lambda value: value.last_message_at or value.created_at, reverse=True)
        return contacts[:limit]

    def append_message(
        self,
        *,
        tenant_id: str,
        contact_id: str,
        role: MessageRole,
        body: str | None,
        provider_message_id: str | None = None,
    ) -> MessageRecord:
        with self._lock:
            if tenant_id not in self._tenants:
                raise StorageError(f"tenant not found: {tenant_id}")
            contact = self._contacts.get(contact_id)
            if contact is None or contact.tenant_id != tenant_id:
                raise StorageError(f"contact not found for tenant: {contact_id}")
            message = MessageRecord(
                message_id=next(self._message_counter),
                tenant_id=tenant_id,
                contact_id=contact_id,
                role=role,
                body=body,
                provider_message_id=provider_message_id,
                provider_status=None,
                created_at=_now_utc(),
            )
            self._messages[message.message_id] = message
            return message

    def list_messages(self, contact_id: str, *, limit: int) -> list[MessageRecord]:
        if limit <= 0:
            return []
        with self._lock:
            messages = [value for value in self._messages.values() if value.contact_id == contact_id]
        return messages[-limit:]

    def set_provider_message_id(self, message_id: int, provider_message_id: str) -> None:
        with self._lock:
            current = self._messages.get(message_id)
            if current is None:
                raise StorageError(f"message not found: {message_id}")
            self._messages[message_id] = replace(current, provider_message_id=provider_message_id)

    def update_delivery_status(self, *, provider_message_id: str, status: str) -> bool:
        with self._lock:
            updated = False
            for message_id, message in self._messages.items():
                if message.provider_message_id == provider_message_id:
                    self._messages[message_id] = replace(message, provider_status=status)
                    updated = True
            return updated

    def delete_messages(self, contact_id: str) -> int:
        with self._lock:
            doomed = [key for key, value in self._messages.items() if value.contact_id == contact_id]
            for key in doomed:
                del self._messages[key]
            return len(doomed)

    def upsert_profile(self, *, user_id: str, tenant_id: str, display_name: str | None = None) -> ProfileRecord:
        with self._lock:
            if tenant_id not in self._tenants:
                raise StorageError(f"tenant not found: {tenant_id}")
            existing = self._profiles.get(user_id)
            profile = ProfileRecord(
                user_id=user_id,
                tenant_id=tenant_id,
                display_name=display_name if display_name is not None else (existing.display_name if existing else None),
                created_at=existing.created_at if existing else _now_utc(),
            )
            self._profiles[user_id] = profile
            return profile

    def get_profile(self, user_id: str) -> ProfileRecord | None:
        return self._profiles.get(user_id)

    def save_calendar_grant(
        self,
        *,
        tenant_id: str,
        user_id: str,
        grant_id: str,
        default_calendar_id: str | None,
    ) -> CalendarGrantRecord:
        with self._lock:
            if tenant_id not in self._tenants:
                raise StorageError(f"tenant not found: {tenant_id}")
            grant = CalendarGrantRecord(
                user_id=user_id,
                tenant_id=tenant_id,
                grant_id=grant_id,
                default_calendar_id=default_calendar_id,
                connected=True,
                updated_at=_now_utc(),
            )
            self._grants[user_id] = grant
            return grant

    def disconnect_calendar_grant(self, *, user_id: str) -> bool:
        with self._lock:
            current = self._grants.get(user_id)
            if current is None or not current.connected:
                return False
            self._grants[user_id] = replace(
                current,
                grant_id=None,
                default_calendar_id=None,
                connected=False,
                updated_at=_now_utc(),
            )
            return True

    def find_calendar_grant(self, tenant_id: str) -> CalendarGrantRecord | None:
        with self._lock:
            candidates = [
                value for value in self._grants.values() if value.tenant_id == tenant_id and value.connected
            ]
        if not candidates:
            return None
        return max(candidates, key=lambda value: value.updated_at)


class LeadStoreBase(DeclarativeBase):
    pass


class _TenantRow(LeadStoreBase):
    __tablename__ = "tenants"

    tenant_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    ai_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class _ContactRow(LeadStoreBase):
    __tablename__ = "contacts"
    __table_args__ = (UniqueConstraint("tenant_id", "whatsapp_address", name="uq_contacts_tenant_address"),)

    contact_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), ForeignKey("tenants.tenant_id"), nullable=False, index=True)
    whatsapp_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class _MessageRow(LeadStoreBase):
    __tablename__ = "messages"

    message_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), ForeignKey("tenants.tenant_id"), nullable=False, index=True)
    contact_id: Mapped[str] = mapped_column(String(64), ForeignKey("contacts.contact_id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_message_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    provider_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class _ProfileRow(LeadStoreBase):
    __tablename__ = "operator_profiles"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), ForeignKey("tenants.tenant_id"), nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class _CalendarGrantRow(LeadStoreBase):
    __tablename__ = "calendar_grants"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tenant_id: Mapped[str] = mapped_column(String(64), ForeignKey("tenants.tenant_id"), nullable=False, index=True)
    grant_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    default_calendar_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SqlAlchemyLeadRepository:
    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise RuntimeError("DATABASE_URL is required for LEAD_STORE_BACKEND=postgres")
        self._engine = create_engine(database_url, future=True, pool_pre_ping=True)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        if database_url.startswith("sqlite"):
            LeadStoreBase.metadata.create_all(self._engine)

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            raise StorageError(str(exc)) from exc

    def reset(self) -> None:
        with self._transaction() as session:
            session.execute(delete(_MessageRow))
            session.execute(delete(_CalendarGrantRow))
            session.execute(delete(_ProfileRow))
            session.execute(delete(_ContactRow))
            session.execute(delete(_TenantRow))

    def create_tenant(self, *, name: str, tenant_id: str | None = None) -> TenantRecord:
        now = _now_utc()
        with self._transaction() as session:
            row = _TenantRow(
                tenant_id=tenant_id or f"tenant_{uuid4().hex[:12]}",
                name=name,
                ai_paused=False,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            return self._tenant_record(row)

    def get_tenant(self, tenant_id: str) -> TenantRecord | None:
        with self._transaction() as session:
            row = session.get(_TenantRow, tenant_id)
            return self._tenant_record(row) if row is not None else None

    def first_tenant(self) -> TenantRecord | None:
        with self._transaction() as session:
            row = session.scalar(select(_TenantRow).order_by(_TenantRow.created_at.asc()).limit(1))
            return self._tenant_record(row) if row is not None else None

    def set_ai_paused(self, tenant_id: str, *, paused: bool) -> TenantRecord:
        with self._transaction() as session:
            row = session.get(_TenantRow, tenant_id)
            if row is None:
                raise StorageError(f"tenant not found: {tenant_id}")
            row.ai_paused = paused
            row.updated_at = _now_utc()
            session.flush()
            return self._tenant_record(row)

    def find_contact_by_address(self, whatsapp_address: str) -> ContactRecord | None:
        with self._transaction() as session:
            row = session.scalar(
                select(_ContactRow)
                .where(_ContactRow.whatsapp_address == whatsapp_address)
                .order_by(_ContactRow.last_message_at.desc(), _ContactRow.created_at.desc())
                .limit(1)
            )
            return self._contact_record(row) if row is not None else None

    def get_contact(self, contact_id: str) -> ContactRecord | None:
        with self._transaction() as session:
            row = session.get(_ContactRow, contact_id)
            return self._contact_record(row) if row is not None else None

    def create_contact(
        self,
        *,
        tenant_id: str,
        whatsapp_address: str,
        display_name: str | None,
        last_message_at: datetime,
    ) -> ContactRecord:
        now = _now_utc()
        with self._transaction() as session:
            if session.get(_TenantRow, tenant_id) is None:
                raise StorageError(f"tenant not found: {tenant_id}")
            row = _ContactRow(
                contact_id=f"contact_{uuid4().hex[:12]}",
                tenant_id=tenant_id,
                whatsapp_address=whatsapp_address,
                display_name=display_name,
                last_message_at=last_message_at,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.flush()
            return self._contact_record(row)

    def touch_contact(self, contact_id: str, *, last_message_at: datetime) -> ContactRecord:
        with self._transaction() as session:
            row = session.get(_ContactRow, contact_id)
            if row is None:
                raise StorageError(f"contact not found: {contact_id}")
            row.last_message_at = last_message_at
            row.updated_at = _now_utc()
            session.flush()
            return self._contact_record(row)

    def list_contacts(self, tenant_id: str, *, limit: int) -> list[ContactRecord]:
        with self._transaction() as session:
            rows = session.scalars(
                select(_ContactRow)
                .where(_ContactRow.tenant_id == tenant_id)
                .order_by(_ContactRow.last_message_at.desc(), _ContactRow.created_at.desc())
                .limit(limit)
            ).all()
            return [self._contact_record(row) for row in rows]

    def append_message(
        self,
        *,
        tenant_id: str,
        contact_id: str,
        role: MessageRole,
        body: str | None,
        provider_message_id: str | None = None,
    ) -> MessageRecord:
        with self._transaction() as session:
            contact = session.get(_ContactRow, contact_id)
            if contact is None or contact.tenant_id != tenant_id:
                raise StorageError(f"contact not found for tenant: {contact_id}")
            row = _MessageRow(
                tenant_id=tenant_id,
                contact_id=contact_id,
                role=role,
                body=body,
                provider_message_id=provider_message_id,
                provider_status=None,
                created_at=_now_utc(),
            )
            session.add(row)
            session.flush()
            return self._message_record(row)

    def list_messages(self, contact_id: str, *, limit: int) -> list[MessageRecord]:
        if limit <= 0:
            return []
        with self._transaction() as session:
            rows = session.scalars(
                select(_MessageRow)
                .where(_MessageRow.contact_id == contact_id)
                .order_by(_MessageRow.message_id.desc())
                .limit(limit)
            ).all()
            return [self._message_record(row) for row in reversed(rows)]

    def set_provider_message_id(self, message_id: int, provider_message_id: str) -> None:
        with self._transaction() as session:
            row = session.get(_MessageRow, message_id)
            if row is None:
                raise StorageError(f"message not found: {message_id}")
            row.provider_message_id = provider_message_id

    def update_delivery_status(self, *, provider_message_id: str, status: str) -> bool:
        with self._transaction() as session:
            result = session.execute(
                update(_MessageRow)
                .where(_MessageRow.provider_message_id == provider_message_id)
                .values(provider_status=status)
            )
            return bool(result.rowcount)

    def delete_messages(self, contact_id: str) -> int:
        with self._transaction() as session:
            result = session.execute(delete(_MessageRow).where(_MessageRow.contact_id == contact_id))
            return int(result.rowcount or 0)

    def upsert_profile(self, *, user_id: str, tenant_id: str, display_name: str | None = None) -> ProfileRecord:
        with self._transaction() as session:
            if session.get(_TenantRow, tenant_id) is None:
                raise StorageError(f"tenant not found: {tenant_id}")
            row = session.get(_ProfileRow, user_id)
            if row is None:
                row = _ProfileRow(user_id=user_id, tenant_id=tenant_id, display_name=display_name, created_at=_now_utc())
                session.add(row)
            else:
                row.tenant_id = tenant_id
                if display_name is not None:
                    row.display_name = display_name
            session.flush()
            return ProfileRecord(
                user_id=row.user_id,
                tenant_id=row.tenant_id,
                display_name=row.display_name,
                created_at=_coerce_utc(row.created_at),  # type: ignore[arg-type]
            )

    def get_profile(self, user_id: str) -> ProfileRecord | None:
        with self._transaction() as session:
            row = session.get(_ProfileRow, user_id)
            if row is None:
                return None
            return ProfileRecord(
                user_id=row.user_id,
                tenant_id=row.tenant_id,
                display_name=row.display_name,
                created_at=_coerce_utc(row.created_at),  # type: ignore[arg-type]
            )

    def save_calendar_grant(
        self,
        *,
        tenant_id: str,
        user_id: str,
        grant_id: str,
        default_calendar_id: str | None,
    ) -> CalendarGrantRecord:
        with self._transaction() as session:
            if session.get(_TenantRow, tenant_id) is None:
                raise StorageError(f"tenant not found: {tenant_id}")
            row = session.get(_CalendarGrantRow, user_id)
            if row is None:
                row = _CalendarGrantRow(user_id=user_id, tenant_id=tenant_id, updated_at=_now_utc())
                session.add(row)
            row.tenant_id = tenant_id
            row.grant_id = grant_id
            row.default_calendar_id = default_calendar_id
            row.connected = True
            row.updated_at = _now_utc()
            session.flush()
            return self._grant_record(row)

    def disconnect_calendar_grant(self, *, user_id: str) -> bool:
        with self._transaction() as session:
            row = session.get(_CalendarGrantRow, user_id)
            if row is None or not row.connected:
                return False
            row.grant_id = None
            row.default_calendar_id = None
            row.connected = False
            row.updated_at = _now_utc()
            return True

    def find_calendar_grant(self, tenant_id: str) -> CalendarGrantRecord | None:
        with self._transaction() as session:
            row = session.scalar(
                select(_CalendarGrantRow)
                .where(_CalendarGrantRow.tenant_id == tenant_id)
                .where(_CalendarGrantRow.connected.is_(True))
                .order_by(_CalendarGrantRow.updated_at.desc())
                .limit(1)
            )
            return self._grant_record(row) if row is not None else None

    @staticmethod
    def _tenant_record(row: _TenantRow) -> TenantRecord:
        return TenantRecord(
            tenant_id=row.tenant_id,
            name=row.name,
            ai_paused=bool(row.ai_paused),
            created_at=_coerce_utc(row.created_at),  # type: ignore[arg-type]
            updated_at=_coerce_utc(row.updated_at),  # type: ignore[arg-type]
        )

    @staticmethod
    def _contact_record(row: _ContactRow) -> ContactRecord:
        return ContactRecord(
            contact_id=row.contact_id,
            tenant_id=row.tenant_id,
            whatsapp_address=row.whatsapp_address,
            display_name=row.display_name,
            last_message_at=_coerce_utc(row.last_message_at),
            created_at=_coerce_utc(row.created_at),  # type: ignore[arg-type]
            updated_at=_coerce_utc(row.updated_at),  # type: ignore[arg-type]
        )

    @staticmethod
    def _message_record(row: _MessageRow) -> MessageRecord:
        return MessageRecord(
            message_id=row.message_id,
            tenant_id=row.tenant_id,
            contact_id=row.contact_id,
            role=row.role,  # type: ignore[arg-type]
            body=row.body,
            provider_message_id=row.provider_message_id,
            provider_status=row.provider_status,
            created_at=_coerce_utc(row.created_at),  # type: ignore[arg-type]
        )

    @staticmethod
    def _grant_record(row: _CalendarGrantRow) -> CalendarGrantRecord:
        return CalendarGrantRecord(
            user_id=row.user_id,
            tenant_id=row.tenant_id,
            grant_id=row.grant_id,
            default_calendar_id=row.default_calendar_id,
            connected=bool(row.connected),
            updated_at=_coerce_utc(row.updated_at),  # type: ignore[arg-type]
        )


def create_lead_repository(*, backend: str, database_url: str) -> LeadRepository:
    normalized = backend.strip().lower()
    if normalized == "postgres":
        return SqlAlchemyLeadRepository(database_url)
    if normalized == "inmemory":
        return InMemoryLeadRepository()
    raise RuntimeError(f"unsupported LEAD_STORE_BACKEND: {backend}")
