from __future__ import annotations

import threading

from lead_console.lead_store import InMemoryLeadRepository


def test_reads_stay_consistent_while_another_thread_appends() -> None:
    repository = InMemoryLeadRepository()
    tenant = repository.create_tenant(name="Demo Organization")
    quiet = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31600000001",
        display_name=None,
        last_message_at=tenant.created_at,
    )
    busy = repository.create_contact(
        tenant_id=tenant.tenant_id,
        whatsapp_address="whatsapp:+31600000002",
        display_name=None,
        last_message_at=tenant.created_at,
    )
    repository.append_message(tenant_id=tenant.tenant_id, contact_id=quiet.contact_id, role="user", body="Hallo")
    repository.save_calendar_grant(
        tenant_id=tenant.tenant_id, user_id="user-001", grant_id="grant-001", default_calendar_id="primary"
    )

    stop = threading.Event()
    errors: list[Exception] = []

    def writer() -> None:
        try:
            while not stop.is_set():
                repository.append_message(tenant_id=tenant.tenant_id, contact_id=busy.contact_id, role="agent", body="x")
        except Exception as exc:
            errors.append(exc)

    thread = threading.Thread(target=writer)
    thread.start()
    try:
        for _ in range(2000):
            assert [message.body for message in repository.list_messages(quiet.contact_id, limit=10)] == ["Hallo"]
            assert repository.find_contact_by_address("whatsapp:+31600000001") == quiet
            assert len(repository.list_contacts(tenant.tenant_id, limit=10)) == 2
            assert repository.find_calendar_grant(tenant.tenant_id) is not None
            assert repository.first_tenant() == tenant
    finally:
        stop.set()
        thread.join(timeout=5)

    assert errors == []
    assert len(repository.list_messages(busy.contact_id, limit=100_000)) > 0
