"""
Pipedrive webhook ingestion.

Inbound payloads come in several shapes:

- direct JSON with flat fields (automation tools):
    {"refId": "...", "stage_id": 3}
- the same JSON wrapped as a string, either as the whole body or under an
  empty key (what a form-encoded post of raw JSON turns into):
    {"": "{\"refId\": \"...\", \"stage_id\": 3}"}
- Pipedrive webhooks, v1 (`meta` + `current`/`previous`) and
  v2 (`meta` + `data`/`previous`)

Every shape is normalized into a PipedriveEvent before dispatch, so the
handlers only deal with one type. Events that cannot be parsed or mapped are
acknowledged without touching any lead; a lead reference that resolves to
nothing is a 404.
"""
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError
from app.models.lead import Lead, LeadNote, LeadTask, LeadStatus


logger = logging.getLogger(__name__)


# Pipedrive pipeline stage id -> lead status
STAGE_STATUS_MAP: Dict[int, LeadStatus] = {
    1: LeadStatus.NEW,
    2: LeadStatus.CONTACT,
    3: LeadStatus.QUALIFIED,
    4: LeadStatus.MEETING_SCHEDULED,
    5: LeadStatus.PROPOSAL_SENT,
    6: LeadStatus.NEGOTIATION,
    7: LeadStatus.CONVERTED,
}

# Deal outcome overrides the stage
DEAL_STATUS_MAP: Dict[str, LeadStatus] = {
    "won": LeadStatus.CONVERTED,
    "lost": LeadStatus.LOST,
}

DELETE_ACTIONS = {"deleted", "delete"}


class EventKind(str, Enum):
    STAGE_CHANGE = "stage_change"
    NOTE = "note"
    ACTIVITY = "activity"
    REF_ID = "ref_id"
    UNKNOWN = "unknown"


@dataclass
class LeadRef:
    ref_id: Optional[str] = None
    pipedrive_id: Optional[str] = None
    lead_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.ref_id or self.pipedrive_id or self.lead_id)


@dataclass
class NoteData:
    content: str
    pipedrive_id: Optional[str] = None


@dataclass
class ActivityData:
    title: str
    pipedrive_id: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    duration: Optional[str] = None
    done: bool = False


@dataclass
class PipedriveEvent:
    kind: EventKind
    lead_ref: LeadRef = field(default_factory=LeadRef)
    stage_id: Optional[int] = None
    deal_status: Optional[str] = None
    note: Optional[NoteData] = None
    activity: Optional[ActivityData] = None
    ref_id: Optional[str] = None
    source: str = "direct"


@dataclass
class WebhookResult:
    message: str
    lead_id: Optional[uuid.UUID] = None
    status: Optional[str] = None
    changed: bool = False

    def to_dict(self) -> dict:
        data = {"message": self.message, "changed": self.changed}
        if self.lead_id is not None:
            data["leadId"] = str(self.lead_id)
        if self.status is not None:
            data["status"] = self.status
        return data


# ==================== Parsing ====================

def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        # v2 custom fields come as {"type": ..., "value": ...}
        return _text(value.get("value"))
    return str(value)


def _int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _first(data: dict, *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _parse_datetime(date_value: Any, time_value: Any = None) -> Optional[datetime]:
    text = _text(date_value)
    if not text:
        return None
    if time_value and "T" not in text and " " not in text:
        text = f"{text}T{time_value}"
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def unwrap_payload(body: Any, depth: int = 0) -> Optional[dict]:
    """
    Turn a raw webhook body into a dict.

    Accepts bytes, a JSON string, a form-encoded body, or a dict whose only
    key is "" holding a JSON string. Returns None when nothing usable is found.
    """
    if depth > 3:
        return None

    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")

    if isinstance(body, str):
        text = body.strip()
        if not text:
            return None
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            form = dict(parse_qsl(text, keep_blank_values=True))
            if "" in form:
                return unwrap_payload(form[""], depth + 1)
            return None
        return unwrap_payload(decoded, depth + 1)

    if isinstance(body, dict):
        if set(body.keys()) == {""} and isinstance(body[""], (str, bytes)):
            return unwrap_payload(body[""], depth + 1)
        return body

    return None


def detect_variant(payload: dict) -> str:
    """Name of the parser variant for an unwrapped payload."""
    if isinstance(payload.get("meta"), dict):
        if isinstance(payload.get("current"), dict):
            return "pipedrive_v1"
        if isinstance(payload.get("data"), dict):
            return "pipedrive_v2"
    return "direct"


def _deal_ref_id(deal: dict) -> Optional[str]:
    ref = _first(deal, "ref_id", "refId")
    if ref is None and isinstance(deal.get("custom_fields"), dict):
        ref = _first(deal["custom_fields"], "ref_id", "refId")
    return _text(ref)


def _parse_pipedrive(payload: dict, variant: str) -> PipedriveEvent:
    meta = payload["meta"]
    body = payload.get("current") if variant == "pipedrive_v1" else payload.get("data")
    body = body or {}
    entity = (_text(_first(meta, "object", "entity")) or "").lower()
    action = (_text(meta.get("action")) or "").lower()

    if action in DELETE_ACTIONS:
        return PipedriveEvent(kind=EventKind.UNKNOWN, source=variant)

    if entity == "deal":
        return PipedriveEvent(
            kind=EventKind.STAGE_CHANGE,
            lead_ref=LeadRef(
                ref_id=_deal_ref_id(body),
                pipedrive_id=_text(_first(body, "id") or _first(meta, "id", "entity_id")),
            ),
            stage_id=_int(body.get("stage_id")),
            deal_status=_text(body.get("status")),
            source=variant,
        )

    if entity == "note":
        content = _text(body.get("content"))
        if not content:
            return PipedriveEvent(kind=EventKind.UNKNOWN, source=variant)
        return PipedriveEvent(
            kind=EventKind.NOTE,
            lead_ref=LeadRef(pipedrive_id=_text(body.get("deal_id"))),
            note=NoteData(content=content, pipedrive_id=_text(body.get("id"))),
            source=variant,
        )

    if entity == "activity":
        return PipedriveEvent(
            kind=EventKind.ACTIVITY,
            lead_ref=LeadRef(pipedrive_id=_text(body.get("deal_id"))),
            activity=ActivityData(
                title=_text(body.get("subject")) or "Pipedrive activity",
                pipedrive_id=_text(body.get("id")),
                description=_text(body.get("note")),
                due_date=_parse_datetime(body.get("due_date"), body.get("due_time")),
                duration=_text(body.get("duration")),
                done=bool(body.get("done")),
            ),
            source=variant,
        )

    return PipedriveEvent(kind=EventKind.UNKNOWN, source=variant)


def _parse_direct(payload: dict) -> PipedriveEvent:
    lead_ref = LeadRef(
        ref_id=_text(_first(payload, "refId", "ref_id")),
        pipedrive_id=_text(_first(payload, "pipedriveId", "pipedrive_id", "dealId", "deal_id")),
        lead_id=_text(_first(payload, "leadId", "lead_id")),
    )
    stage_id = _int(_first(payload, "stage_id", "stageId"))
    deal_status = _text(_first(payload, "status", "dealStatus", "deal_status"))

    if stage_id is not None or deal_status is not None:
        return PipedriveEvent(
            kind=EventKind.STAGE_CHANGE,
            lead_ref=lead_ref,
            stage_id=stage_id,
            deal_status=deal_status,
        )

    note = payload.get("note")
    if isinstance(note, dict):
        content = _text(_first(note, "content", "text"))
        note_id = _text(note.get("id"))
    else:
        content = _text(_first(payload, "note", "content"))
        note_id = _text(_first(payload, "noteId", "note_id"))
    if content:
        return PipedriveEvent(
            kind=EventKind.NOTE,
            lead_ref=lead_ref,
            note=NoteData(content=content, pipedrive_id=note_id),
        )

    activity = payload.get("activity")
    if isinstance(activity, dict):
        return PipedriveEvent(
            kind=EventKind.ACTIVITY,
            lead_ref=lead_ref,
            activity=ActivityData(
                title=_text(_first(activity, "subject", "title")) or "Pipedrive activity",
                pipedrive_id=_text(activity.get("id")),
                description=_text(_first(activity, "note", "description")),
                due_date=_parse_datetime(
                    _first(activity, "due_date", "dueDate"), activity.get("due_time")
                ),
                duration=_text(activity.get("duration")),
                done=bool(activity.get("done")),
            ),
        )

    # Reference id assignment: a new refId for a lead known by another key
    if lead_ref.ref_id and (lead_ref.lead_id or lead_ref.pipedrive_id):
        return PipedriveEvent(kind=EventKind.REF_ID, lead_ref=lead_ref, ref_id=lead_ref.ref_id)

    return PipedriveEvent(kind=EventKind.UNKNOWN, lead_ref=lead_ref)


def parse_event(body: Any) -> PipedriveEvent:
    """Sniff the payload shape and normalize it. Never raises."""
    payload = unwrap_payload(body)
    if payload is None:
        return PipedriveEvent(kind=EventKind.UNKNOWN, source="unparseable")

    variant = detect_variant(payload)
    if variant == "direct":
        return _parse_direct(payload)
    return _parse_pipedrive(payload, variant)


def map_stage(stage_id: Optional[int], deal_status: Optional[str] = None) -> Optional[LeadStatus]:
    """Lead status for a deal; won/lost override the stage. None when unmapped."""
    if deal_status:
        outcome = DEAL_STATUS_MAP.get(deal_status.lower())
        if outcome is not None:
            return outcome
    if stage_id is None:
        return None
    return STAGE_STATUS_MAP.get(stage_id)


# ==================== Dispatch ====================

class PipedriveWebhookService:
    """Applies normalized events to leads. All updates are idempotent."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_lead(self, ref: LeadRef) -> Optional[Lead]:
        """Find a lead by ref_id, then pipedrive_id, then internal id."""
        if ref.ref_id:
            lead = await self._first(select(Lead).where(Lead.ref_id == ref.ref_id))
            if lead is not None:
                return lead
        if ref.pipedrive_id:
            lead = await self._first(select(Lead).where(Lead.pipedrive_id == ref.pipedrive_id))
            if lead is not None:
                return lead
        if ref.lead_id:
            try:
                lead_uuid = uuid.UUID(ref.lead_id)
            except ValueError:
                return None
            return await self.db.get(Lead, lead_uuid)
        return None

    async def _first(self, stmt):
        result = await self.db.execute(stmt.limit(1))
        return result.scalars().first()

    async def _require_lead(self, ref: LeadRef) -> Lead:
        lead = await self.resolve_lead(ref)
        if lead is None:
            logger.warning(f"Pipedrive webhook: lead not found for {ref}")
            raise NotFoundError("Lead not found")
        return lead

    async def handle(self, body: Any) -> WebhookResult:
        event = parse_event(body)
        logger.info(f"Pipedrive webhook received: kind={event.kind.value} source={event.source}")

        if event.kind == EventKind.UNKNOWN or event.lead_ref.is_empty:
            return WebhookResult(message="Event ignored")

        if event.kind == EventKind.STAGE_CHANGE:
            return await self._apply_stage(event)
        if event.kind == EventKind.NOTE:
            return await self._apply_note(event)
        if event.kind == EventKind.ACTIVITY:
            return await self._apply_activity(event)
        return await self._apply_ref_id(event)

    async def _apply_stage(self, event: PipedriveEvent) -> WebhookResult:
        status = map_stage(event.stage_id, event.deal_status)
        if status is None:
            logger.info(
                f"Pipedrive webhook: unmapped stage_id={event.stage_id} status={event.deal_status}, ignored"
            )
            return WebhookResult(message="Stage not mapped, event ignored")

        lead = await self._require_lead(event.lead_ref)
        changed = False

        # Link the deal the first time it is seen for a lead known by ref_id
        if event.lead_ref.pipedrive_id and not lead.pipedrive_id:
            lead.pipedrive_id = event.lead_ref.pipedrive_id
            changed = True

        if lead.status != status.value:
            logger.info(f"Lead {lead.id} status {lead.status} -> {status.value} (Pipedrive)")
            lead.status = status.value
            changed = True

        if changed:
            await self.db.flush()
        return WebhookResult(
            message="Lead updated" if changed else "Lead unchanged",
            lead_id=lead.id,
            status=lead.status,
            changed=changed,
        )

    async def _apply_note(self, event: PipedriveEvent) -> WebhookResult:
        lead = await self._require_lead(event.lead_ref)
        note = event.note

        if note.pipedrive_id:
            existing = await self._first(
                select(LeadNote).where(LeadNote.pipedrive_id == note.pipedrive_id)
            )
            if existing is not None:
                return WebhookResult(message="Note already imported", lead_id=lead.id)

        self.db.add(LeadNote(lead_id=lead.id, content=note.content, pipedrive_id=note.pipedrive_id))
        await self.db.flush()
        return WebhookResult(message="Note created", lead_id=lead.id, changed=True)

    async def _apply_activity(self, event: PipedriveEvent) -> WebhookResult:
        lead = await self._require_lead(event.lead_ref)
        activity = event.activity

        if activity.pipedrive_id:
            existing = await self._first(
                select(LeadTask).where(LeadTask.pipedrive_id == activity.pipedrive_id)
            )
            if existing is not None:
                return WebhookResult(message="Task already imported", lead_id=lead.id)

        self.db.add(LeadTask(
            lead_id=lead.id,
            title=activity.title,
            description=activity.description,
            due_date=activity.due_date,
            duration=activity.duration,
            done=activity.done,
            pipedrive_id=activity.pipedrive_id,
        ))
        await self.db.flush()
        return WebhookResult(message="Task created", lead_id=lead.id, changed=True)

    async def _apply_ref_id(self, event: PipedriveEvent) -> WebhookResult:
        lead = await self._require_lead(event.lead_ref)
        changed = False

        if lead.ref_id != event.ref_id:
            lead.ref_id = event.ref_id
            changed = True
        if event.lead_ref.pipedrive_id and lead.pipedrive_id != event.lead_ref.pipedrive_id:
            lead.pipedrive_id = event.lead_ref.pipedrive_id
            changed = True

        if changed:
            await self.db.flush()
        return WebhookResult(
            message="Reference assigned" if changed else "Lead unchanged",
            lead_id=lead.id,
            changed=changed,
        )
