import json

import pytest
from sqlalchemy import select

from app.database import async_session_factory
from app.models.lead import Lead, LeadNote, LeadStatus, LeadTask
from app.services.pipedrive_webhook import (
    EventKind, detect_variant, map_stage, parse_event, unwrap_payload,
)


# ==================== Parsing ====================

def test_direct_payload():
    event = parse_event(json.dumps({"refId": "REF-1", "stage_id": 3}))
    assert event.kind == EventKind.STAGE_CHANGE
    assert event.lead_ref.ref_id == "REF-1"
    assert event.stage_id == 3
    assert event.source == "direct"


def test_string_wrapped_payloads():
    inner = json.dumps({"refId": "REF-2", "stage_id": "6"})

    for body in (
        json.dumps({"": inner}),
        json.dumps(inner),
        "=" + inner.replace("&", "%26"),
    ):
        event = parse_event(body)
        assert event.kind == EventKind.STAGE_CHANGE
        assert event.lead_ref.ref_id == "REF-2"
        assert event.stage_id == 6


def test_pipedrive_v1_deal():
    payload = {
        "meta": {"object": "deal", "action": "updated", "id": 77},
        "current": {"id": 77, "stage_id": 4, "status": "open"},
        "previous": {"stage_id": 3},
    }
    assert detect_variant(payload) == "pipedrive_v1"
    event = parse_event(json.dumps(payload))
    assert event.kind == EventKind.STAGE_CHANGE
    assert event.lead_ref.pipedrive_id == "77"
    assert event.stage_id == 4


def test_pipedrive_v2_note_and_activity():
    note = {
        "meta": {"entity": "note", "action": "create"},
        "data": {"id": 501, "content": "Client asked for a demo", "deal_id": 77},
    }
    assert detect_variant(note) == "pipedrive_v2"
    event = parse_event(note)
    assert event.kind == EventKind.NOTE
    assert event.note.pipedrive_id == "501"
    assert event.lead_ref.pipedrive_id == "77"

    activity = {
        "meta": {"entity": "activity", "action": "create"},
        "data": {
            "id": 900, "subject": "Demo call", "deal_id": 77,
            "due_date": "2024-06-03", "due_time": "14:00", "duration": "00:45", "done": False,
        },
    }
    event = parse_event(activity)
    assert event.kind == EventKind.ACTIVITY
    assert event.activity.title == "Demo call"
    assert event.activity.due_date.hour == 14


def test_deleted_and_garbage_payloads_are_unknown():
    deleted = {"meta": {"object": "deal", "action": "deleted"}, "current": {"id": 1}}
    assert parse_event(deleted).kind == EventKind.UNKNOWN
    assert parse_event(b"not json at all").kind == EventKind.UNKNOWN
    assert parse_event(b"").kind == EventKind.UNKNOWN
    assert unwrap_payload("[1, 2, 3]") is None


@pytest.mark.parametrize("stage_id, deal_status, expected", [
    (1, None, LeadStatus.NEW),
    (3, "open", LeadStatus.QUALIFIED),
    (7, None, LeadStatus.CONVERTED),
    (2, "won", LeadStatus.CONVERTED),
    (5, "lost", LeadStatus.LOST),
    (99, None, None),
    (None, "open", None),
])
def test_map_stage(stage_id, deal_status, expected):
    assert map_stage(stage_id, deal_status) == expected


# ==================== Endpoint ====================

async def _set_lead(lead_id, **fields):
    async with async_session_factory() as db:
        lead = await db.get(Lead, lead_id)
        for name, value in fields.items():
            setattr(lead, name, value)
        await db.commit()


async def _get_lead(lead_id) -> Lead:
    async with async_session_factory() as db:
        return await db.get(Lead, lead_id)


async def test_stage_change_by_ref_id(client, world):
    await _set_lead(world.lead_a.id, ref_id="REF-A")

    response = await client.post("/webhook/pipedrive", content=json.dumps({"refId": "REF-A", "stage_id": 4}))
    assert response.status_code == 200
    body = response.json()
    assert body["changed"] is True
    assert body["status"] == "meeting_scheduled"
    assert body["leadId"] == str(world.lead_a.id)

    # Replaying the same event changes nothing
    again = await client.post("/webhook/pipedrive", content=json.dumps({"refId": "REF-A", "stage_id": 4}))
    assert again.json()["changed"] is False


async def test_deal_event_links_pipedrive_id(client, world):
    await _set_lead(world.lead_a.id, ref_id="REF-A")
    payload = {
        "meta": {"object": "deal", "action": "updated"},
        "current": {"id": 321, "stage_id": 2, "ref_id": "REF-A"},
    }
    response = await client.post("/webhook/pipedrive", json=payload)
    assert response.status_code == 200

    lead = await _get_lead(world.lead_a.id)
    assert lead.pipedrive_id == "321"
    assert lead.status == "contact"


async def test_unmapped_stage_is_acknowledged_without_changes(client, world):
    await _set_lead(world.lead_a.id, ref_id="REF-A", status="negotiation")

    response = await client.post("/webhook/pipedrive", content=json.dumps({"refId": "REF-A", "stage_id": 42}))
    assert response.status_code == 200
    assert response.json()["changed"] is False

    assert (await _get_lead(world.lead_a.id)).status == "negotiation"


async def test_unknown_lead_reference_is_not_found(client, world):
    response = await client.post("/webhook/pipedrive", content=json.dumps({"refId": "NOPE", "stage_id": 2}))
    assert response.status_code == 404


async def test_unparseable_body_is_ignored(client, world):
    response = await client.post("/webhook/pipedrive", content=b"hello")
    assert response.status_code == 200
    assert response.json()["message"] == "Event ignored"


async def test_non_text_meta_fields_are_ignored(client, world):
    payload = {"meta": {"object": 5, "action": "updated"}, "current": {"stage_id": 2}}
    assert parse_event(payload).kind == EventKind.UNKNOWN
    assert parse_event({"meta": {"object": "deal", "action": ["x"]}, "current": {"stage_id": 2}}).kind == EventKind.STAGE_CHANGE

    response = await client.post("/webhook/pipedrive", content=json.dumps(payload))
    assert response.status_code == 200
    assert response.json()["message"] == "Event ignored"


async def test_form_encoded_wrapped_body(client, world):
    await _set_lead(world.lead_b.id, ref_id="REF-B")
    inner = json.dumps({"refId": "REF-B", "status": "won"})
    response = await client.post(
        "/webhook/pipedrive",
        data={"": inner},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert response.status_code == 200
    assert (await _get_lead(world.lead_b.id)).status == "converted"


async def test_notes_and_activities_are_imported_once(client, world):
    await _set_lead(world.lead_a.id, pipedrive_id="77")
    note = {
        "meta": {"entity": "note", "action": "create"},
        "data": {"id": 501, "content": "Client asked for a demo", "deal_id": 77},
    }
    activity = {
        "meta": {"entity": "activity", "action": "create"},
        "data": {"id": 900, "subject": "Demo call", "deal_id": 77, "done": True},
    }

    for _ in range(2):
        assert (await client.post("/webhook/pipedrive", json=note)).status_code == 200
        assert (await client.post("/webhook/pipedrive", json=activity)).status_code == 200

    async with async_session_factory() as db:
        notes = (await db.execute(select(LeadNote))).scalars().all()
        tasks = (await db.execute(select(LeadTask))).scalars().all()
    assert [n.content for n in notes] == ["Client asked for a demo"]
    assert [(t.title, t.done) for t in tasks] == [("Demo call", True)]


async def test_ref_id_assignment(client, world):
    response = await client.post(
        "/webhook/pipedrive",
        json={"leadId": str(world.lead_b.id), "refId": "REF-NEW", "pipedriveId": "555"},
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Reference assigned"

    lead = await _get_lead(world.lead_b.id)
    assert lead.ref_id == "REF-NEW"
    assert lead.pipedrive_id == "555"
