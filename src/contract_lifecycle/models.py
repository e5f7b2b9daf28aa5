"""
Domain models for speaker engagement contracts.

The deal snapshot is what the sales pipeline hands over; everything else is
owned by the contract lifecycle core and persisted through a
`ContractRepository` (see src/integrations/contracts/interfaces.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ContractStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    # Written by older signing paths; read as partially signed.
    CLIENT_SIGNED = "client_signed"
    SPEAKER_SIGNED = "speaker_signed"
    PARTIALLY_SIGNED = "partially_signed"
    FULLY_EXECUTED = "fully_executed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ContractStatus.FULLY_EXECUTED, ContractStatus.CANCELLED)


class Modality(str, Enum):
    VIRTUAL = "virtual"
    IN_PERSON = "in-person"

    @classmethod
    def for_event_type(cls, event_type: Optional[str]) -> "Modality":
        if (event_type or "").strip().lower() in VIRTUAL_EVENT_TYPES:
            return cls.VIRTUAL
        return cls.IN_PERSON


VIRTUAL_EVENT_TYPES = frozenset({"virtual", "webinar", "online"})


class SignerType(str, Enum):
    CLIENT = "client"
    SPEAKER = "speaker"
    ADMIN = "admin"


class SignatureMethod(str, Enum):
    DIGITAL_PAD = "digital_pad"
    ELECTRONIC = "electronic"
    WET = "wet"


# ---------------------------------------------------------------------------
# Creation inputs
# ---------------------------------------------------------------------------

@dataclass
class DealSnapshot:
    """Client, event and financial fields copied from a won deal."""

    client_name: str
    client_email: str
    event_title: str
    event_date: Union[date, str, None]
    event_location: str
    deal_value: float
    deal_id: Optional[str] = None
    company: Optional[str] = None
    client_phone: Optional[str] = None
    event_type: Optional[str] = None
    attendee_count: Optional[int] = None
    speaker_requested: Optional[str] = None
    currency: Optional[str] = None

    # Virtual engagement terms
    event_platform: Optional[str] = None
    event_timezone: Optional[str] = None
    presentation_duration: Optional[str] = None
    recording_usage: Optional[str] = None
    recording_permission: Optional[str] = None
    recording_distribution: Optional[str] = None
    recording_usage_period: Optional[str] = None
    governing_law: Optional[str] = None

    # Travel terms (in-person)
    travel_required: bool = False
    flight_required: bool = False
    flight_class: Optional[str] = None
    hotel_required: bool = False
    hotel_dates: Optional[str] = None
    airport_transfers: Optional[str] = None
    local_transportation: Optional[str] = None
    travel_stipend: Optional[float] = None
    travel_stipend_coverage: Optional[str] = None


# Snapshot fields that only feed the templates; they are frozen into metadata.
TEMPLATE_TERM_FIELDS: Tuple[str, ...] = (
    "event_platform",
    "event_timezone",
    "presentation_duration",
    "recording_usage",
    "recording_permission",
    "recording_distribution",
    "recording_usage_period",
    "governing_law",
    "travel_required",
    "flight_required",
    "flight_class",
    "hotel_required",
    "hotel_dates",
    "airport_transfers",
    "local_transportation",
    "travel_stipend",
    "travel_stipend_coverage",
)


@dataclass
class SpeakerInfo:
    name: str
    email: Optional[str] = None
    fee: Optional[float] = None


@dataclass
class SignerInfo:
    name: str
    email: str
    title: Optional[str] = None


@dataclass
class SignatureOrigin:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


# ---------------------------------------------------------------------------
# Contract record
# ---------------------------------------------------------------------------

@dataclass
class EventSnapshot:
    title: str
    date: date
    location: str
    type: Optional[str] = None


@dataclass
class ClientSnapshot:
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class SpeakerSnapshot:
    name: Optional[str] = None
    email: Optional[str] = None
    fee: Optional[float] = None


@dataclass
class ContractRecord:
    id: str
    contract_number: str
    title: str
    modality: Modality
    status: ContractStatus
    fee_amount: float
    payment_terms: str
    currency: str
    event: EventSnapshot
    client: ClientSnapshot
    speaker: SpeakerSnapshot
    generated_at: datetime
    expires_at: datetime
    access_token: str
    client_signing_token: str
    speaker_signing_token: str
    deal_id: Optional[str] = None
    contract_type: str = "client_speaker"
    additional_terms: Optional[str] = None
    sent_at: Optional[datetime] = None
    client_signed_at: Optional[datetime] = None
    speaker_signed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def token_for(self, signer_type: SignerType) -> str:
        if signer_type == SignerType.CLIENT:
            return self.client_signing_token
        if signer_type == SignerType.SPEAKER:
            return self.speaker_signing_token
        return self.access_token

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass
class ContractVersion:
    id: str
    contract_id: str
    version_number: int
    terms: str
    changes_summary: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class Signature:
    id: str
    contract_id: str
    signer_type: SignerType
    signer_name: str
    signer_email: str
    signed_at: datetime
    signer_title: Optional[str] = None
    signature_data: Optional[str] = None
    method: SignatureMethod = SignatureMethod.DIGITAL_PAD
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    verified: bool = True


# ---------------------------------------------------------------------------
# Updates
# ---------------------------------------------------------------------------

@dataclass
class ContractPatch:
    """Typed partial update. Only fields that are not None are written.

    Tokens, the contract number and `expires_at` are intentionally absent:
    they are fixed at creation.
    """

    status: Optional[ContractStatus] = None
    title: Optional[str] = None
    fee_amount: Optional[float] = None
    payment_terms: Optional[str] = None
    additional_terms: Optional[str] = None
    event: Optional[EventSnapshot] = None
    speaker: Optional[SpeakerSnapshot] = None
    sent_at: Optional[datetime] = None
    client_signed_at: Optional[datetime] = None
    speaker_signed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None

    def items(self) -> Iterator[Tuple[str, Any]]:
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                yield f.name, value

    def is_empty(self) -> bool:
        return next(self.items(), None) is None


def apply_patch(record: ContractRecord, patch: ContractPatch, *, updated_at: Optional[datetime] = None) -> ContractRecord:
    changes = dict(patch.items())
    if updated_at is not None:
        changes["updated_at"] = updated_at
    return replace(record, **changes)


@dataclass
class ContractAmendment:
    """Admin-facing edit of unsigned terms."""

    title: Optional[str] = None
    fee_amount: Optional[float] = None
    payment_terms: Optional[str] = None
    additional_terms: Optional[str] = None
    event_title: Optional[str] = None
    event_date: Union[date, str, None] = None
    event_location: Optional[str] = None
    speaker_fee: Optional[float] = None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

@dataclass
class RenderedContract:
    text: str
    html: str


@dataclass
class SignatureResult:
    signature_id: str
    contract_fully_executed: bool
    contract: ContractRecord


@dataclass
class SigningView:
    contract: ContractRecord
    signer_type: SignerType
    signatures: List[Signature]
    can_sign: bool
    expired: bool
