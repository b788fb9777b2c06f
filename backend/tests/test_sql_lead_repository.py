from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from lead_console.lead_store import (
    InMemoryLeadRepository,
    SqlAlchemyLeadRepository,
    StorageError,
    create_lead_repository,
)


def _repository(tmp_path: Path) -> SqlAlchemyLeadRepository:
    return SqlAlchemyLeadRepository(f"sqlite:///{tmp_path / 'leads.db'}")


def test_sql_repository_round_trips_tenant_contact_and_messages(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    tenant = repository.create_tenant(name="Demo Organization")
    contact = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31612345678",
        display_name="+31612345678",
        last_message_at=now,
    )

    for index in range(5):
        repository.append_message(
            tenant_id=tenant.tenant_id,
            contact_id=contact.contact_id,
            role="user" if index % 2 == 0 else "agent",
            body=f"bericht {index}",
        )

    recent = repository.list_messages(contact.contact_id, limit=3)
    assert [message.body for message in recent] == ["bericht 2", "bericht 3", "bericht 4"]
    assert recent[0].message_id < recent[1].message_id < recent[2].message_id
    assert recent[0].created_at.tzinfo is not None

    found = repository.find_contact_by_address("whatsapp:+31612345678")
    assert found is not None
    assert found.contact_id == contact.contact_id
    assert found.last_message_at == now
    assert repository.first_tenant() == repository.get_tenant(tenant.tenant_id)


def test_sql_repository_enforces_unique_address_per_tenant(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    tenant = repository.create_tenant(name="Demo Organization")
    now = datetime.now(timezone.utc)
    repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31612345678",
        display_name=None,
        last_message_at=now,
    )

    with pytest.raises(StorageError):
        repository.create_contact(
            tenant_id=tenant.tenant_id,
            whatsapp_address="whatsapp:+31612345678",
            display_name=None,
            last_message_at=now,
        )


def test_sql_repository_rejects_messages_for_foreign_contact(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    tenant = repository.create_tenant(name="Demo Organization")
    other = repository.create_tenant(name="Other Co")
    contact = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31612345678",
        display_name=None,
        last_message_at=datetime.now(timezone.utc),
    )

    with pytest.raises(StorageError):
        repository.append_message(tenant_id=other.tenant_id, contact_id=contact.contact_id, role="user", body="Hallo")


def test_sql_repository_delivery_status_pause_and_grants(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    tenant = repository.create_tenant(name="Demo Organization")
    contact = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31612345678",
        display_name=None,
        last_message_at=datetime.now(timezone.utc),
    )
    message = repository.append_message(
        tenant_id=tenant.tenant_id,
        contact_id=contact.contact_id,
        role="human",
        body="Ik bel je zo.",
    )
    repository.set_provider_message_id(message.message_id, "SM001")

    assert repository.update_delivery_status(provider_message_id="SM001", status="delivered") is True
    assert repository.update_delivery_status(provider_message_id="SM404", status="failed") is False
    assert repository.list_messages(contact.contact_id, limit=10)[0].provider_status == "delivered"

    assert repository.set_ai_paused(tenant.tenant_id, paused=True).ai_paused is True
    with pytest.raises(StorageError):
        repository.set_ai_paused("tenant-missing", paused=True)

    repository.upsert_profile(user_id="operator-001", tenant_id=tenant.tenant_id, display_name="Operator")
    assert repository.find_calendar_grant(tenant.tenant_id) is None
    repository.save_calendar_grant(
        tenant_id=tenant.tenant_id,
        user_id="operator-001",
        grant_id="grant-001",
        default_calendar_id="primary",
    )
    grant = repository.find_calendar_grant(tenant.tenant_id)
    assert grant is not None
    assert grant.grant_id == "grant-001"
    assert repository.disconnect_calendar_grant(user_id="operator-001") is True
    assert repository.disconnect_calendar_grant(user_id="operator-001") is False
    assert repository.find_calendar_grant(tenant.tenant_id) is None

    assert repository.delete_messages(contact.contact_id) == 1
    assert repository.list_messages(contact.contact_id, limit=10) == []


def test_sql_repository_lists_contacts_by_recent_activity(tmp_path: Path) -> None:
    repository = _repository(tmp_path)
    tenant = repository.create_tenant(name="Demo Organization")
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    older = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31600000001",
        display_name=None,
        last_message_at=now - timedelta(hours=2),
    )
    newer = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31600000002",
        display_name=None,
        last_message_at=now - timedelta(hours=1),
    )

    assert [contact.contact_id for contact in repository.list_contacts(tenant.tenant_id, limit=10)] == [
        newer.contact_id,
        older.contact_id,
    ]
    repository.touch_contact(older.contact_id, last_message_at=now)
    assert repository.list_contacts(tenant.tenant_id, limit=1)[0].contact_id == older.contact_id


def test_create_lead_repository_selects_backend(tmp_path: Path) -> None:
    assert isinstance(create_lead_repository(backend="inmemory", database_url=""), InMemoryLeadRepository)
    assert isinstance(
        create_lead_repository(backend="postgres", database_url=f"sqlite:///{tmp_path / 'leads.db'}"),
        SqlAlchemyLeadRepository,
    )
    with pytest.raises(RuntimeError, match="unsupported LEAD_STORE_BACKEND"):
        create_lead_repository(backend="mongo", database_url="")
