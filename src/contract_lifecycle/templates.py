"""
Contract template library.

Two agreement templates, one per event modality. Each template is an ordered
tuple of sections; a section body is stored as literal text segments
interleaved with `Placeholder` references. Bodies are written with
`{{field_name}}` markers for readability and split into segments once, when
this module is imported. Every placeholder must belong to the template's
declared vocabulary, so a typo in a template fails at import time rather than
in the middle of rendering a legal document.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Tuple, Union

from src.contract_lifecycle.models import Modality

_MARKER_RE = re.compile(r"\{\{([a-z_]+)\}\}")


@dataclass(frozen=True)
class Placeholder:
    name: str


Segment = Union[str, Placeholder]


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    segments: Tuple[Segment, ...]

    @property
    def placeholders(self) -> FrozenSet[str]:
        return frozenset(s.name for s in self.segments if isinstance(s, Placeholder))


@dataclass(frozen=True)
class ContractTemplate:
    version: str
    title: str
    modality: Modality
    vocabulary: FrozenSet[str]
    sections: Tuple[Section, ...]

    def __post_init__(self) -> None:
        for section in self.sections:
            unknown = section.placeholders - self.vocabulary
            if unknown:
                raise ValueError(
                    f"Template {self.version} section '{section.id}' uses undeclared placeholders: {sorted(unknown)}"
                )

    def placeholders(self) -> FrozenSet[str]:
        found: set = set()
        for section in self.sections:
            found |= section.placeholders
        return frozenset(found)

    def section_ids(self) -> List[str]:
        return [s.id for s in self.sections]


def section(section_id: str, title: str, body: str) -> Section:
    segments: List[Segment] = []
    pos = 0
    for match in _MARKER_RE.finditer(body):
        if match.start() > pos:
            segments.append(body[pos:match.start()])
        segments.append(Placeholder(match.group(1)))
        pos = match.end()
    if pos < len(body):
        segments.append(body[pos:])
    return Section(id=section_id, title=title, segments=tuple(segments))


# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

BASE_PLACEHOLDERS: FrozenSet[str] = frozenset({
    "contract_number",
    "contract_date",
    "client_name",
    "client_company",
    "client_email",
    "client_phone",
    "speaker_name",
    "speaker_email",
    "speaker_fee",
    "event_title",
    "event_date",
    "event_location",
    "event_type",
    "attendee_count",
    "fee_amount",
    "currency",
    "payment_terms",
    "additional_terms",
})

VIRTUAL_PLACEHOLDERS: FrozenSet[str] = BASE_PLACEHOLDERS | frozenset({
    "event_platform",
    "event_timezone",
    "presentation_duration",
    "recording_usage",
    "recording_permission",
    "recording_distribution",
    "recording_usage_period",
    "governing_law",
})

IN_PERSON_PLACEHOLDERS: FrozenSet[str] = BASE_PLACEHOLDERS | frozenset({
    "travel_details",
    "flight_required",
    "flight_booking_responsibility",
    "flight_class",
    "hotel_required",
    "hotel_arrangements",
    "hotel_dates",
    "airport_transfers",
    "local_transportation",
    "travel_stipend",
    "travel_stipend_coverage",
})


# ---------------------------------------------------------------------------
# Shared sections
# ---------------------------------------------------------------------------

_SIGNATURES = """By signing below, both parties agree to the terms and conditions set forth in this Agreement.

This Agreement may be executed electronically, and electronic signatures shall be deemed equivalent to original signatures.

Contract Number: {{contract_number}}
Generated Date: {{contract_date}}

CLIENT SIGNATURE:
_________________________________
{{client_name}}
{{client_company}}
Date: ________________

SPEAKER SIGNATURE:
_________________________________
{{speaker_name}}
Date: ________________"""


# ---------------------------------------------------------------------------
# Virtual template
# ---------------------------------------------------------------------------

VIRTUAL_EVENT_TEMPLATE = ContractTemplate(
    version="v1.0-virtual",
    title="Virtual Speaker Engagement Agreement",
    modality=Modality.VIRTUAL,
    vocabulary=VIRTUAL_PLACEHOLDERS,
    sections=(
        section("parties", "Parties", """This Virtual Speaker Engagement Agreement ("Agreement") is entered into on {{contract_date}} between:

Client: {{client_name}} ({{client_company}})
Email: {{client_email}}
Phone: {{client_phone}}

Speaker: {{speaker_name}}
Email: {{speaker_email}}

Event Details:
- Event Title: {{event_title}}
- Event Date: {{event_date}}
- Platform: {{event_platform}}
- Event Type: Virtual Presentation
- Expected Attendees: {{attendee_count}}
- Time Zone: {{event_timezone}}"""),
        section("services", "Services to be Provided", """The Speaker agrees to provide the following services:

1. Virtual Presentation: Deliver a virtual presentation/keynote via the designated platform
2. Duration: {{presentation_duration}} presentation plus Q&A
3. Technical Requirements: Ensure reliable internet connection and appropriate audio/video setup
4. Format: Virtual presentation with screen sharing capabilities
5. Recording: Agreement to allow recording for {{recording_usage}}

Virtual Platform Requirements:
- Test connection prior to event
- Professional background/virtual background
- High-quality audio and video equipment
- Backup internet connection if possible"""),
        section("compensation", "Compensation and Payment Terms", """Speaker Fee: {{currency}} {{speaker_fee}}

Payment Terms:
{{payment_terms}}

Virtual Event Considerations:
- No travel expenses required
- Fee includes all preparation and presentation time
- Technical setup is Speaker's responsibility

Total Contract Value: {{currency}} {{fee_amount}}"""),
        section("technical_requirements", "Technical Requirements and Obligations", """Speaker Technical Obligations:
1. Maintain stable internet connection (minimum 10 Mbps upload)
2. Use professional-grade microphone and camera
3. Ensure quiet, professional environment
4. Test platform functionality before event
5. Have backup plan for technical failures

Client Technical Obligations:
1. Provide platform access and credentials
2. Arrange technical rehearsal if requested
3. Provide technical support contact
4. Manage attendee access and platform settings
5. Handle recording and distribution (if applicable)"""),
        section("virtual_cancellation", "Cancellation and Technical Failure Policy", """Standard Cancellation:
- More than 14 days before event: Full refund minus 10% processing fee
- 7-14 days before event: 50% of speaker fee retained
- Less than 7 days before event: Full speaker fee retained

Technical Failure:
- If Speaker experiences technical failure preventing presentation: Full refund
- If Client's platform fails: Full speaker fee paid, option to reschedule
- Both parties must attempt reasonable troubleshooting before cancellation

Force Majeure:
Including but not limited to internet outages, platform failures, or other technical impediments beyond reasonable control."""),
        section("intellectual_property", "Intellectual Property and Recording", """Speaker's IP: Speaker retains all rights to their presentation materials and content.

Recording Rights:
- Recording permission: {{recording_permission}}
- Distribution rights: {{recording_distribution}}
- Usage period: {{recording_usage_period}}

Platform Content: Any materials shared via screen share remain property of Speaker.

Attribution: Client agrees to provide proper attribution in all uses of recorded content."""),
        section("general_terms", "General Terms", """Governing Law: This Agreement shall be governed by the laws of {{governing_law}}.

Time Zone: All times referenced are in {{event_timezone}} unless otherwise specified.

Platform Terms: Both parties agree to abide by the terms of service of the chosen platform.

Entire Agreement: This constitutes the entire agreement between the parties.

Additional Terms:
{{additional_terms}}"""),
        section("signatures", "Electronic Signatures", _SIGNATURES),
    ),
)


# ---------------------------------------------------------------------------
# In-person template
# ---------------------------------------------------------------------------

IN_PERSON_EVENT_TEMPLATE = ContractTemplate(
    version="v1.0-inperson",
    title="In-Person Speaker Engagement Agreement",
    modality=Modality.IN_PERSON,
    vocabulary=IN_PERSON_PLACEHOLDERS,
    sections=(
        section("parties", "Parties", """This Speaker Engagement Agreement ("Agreement") is entered into on {{contract_date}} between:

Client: {{client_name}} ({{client_company}})
Email: {{client_email}}
Phone: {{client_phone}}

Speaker: {{speaker_name}}
Email: {{speaker_email}}

Event Details:
- Event Title: {{event_title}}
- Event Date: {{event_date}}
- Event Location: {{event_location}}
- Event Type: {{event_type}}
- Expected Attendees: {{attendee_count}}"""),
        section("services", "Services to be Provided", """The Speaker agrees to provide the following services:

1. Speaking Engagement: Deliver a presentation/keynote on topics as mutually agreed upon
2. Duration: Standard presentation duration unless otherwise specified
3. Format: {{event_type}} format as appropriate for the venue and audience
4. Preparation: Reasonable preparation time and materials as needed for the engagement

Specific Requirements:
- Presentation tailored to an audience of {{attendee_count}} attendees
- Professional presentation materials and setup"""),
        section("compensation", "Compensation and Payment Terms", """Speaker Fee: {{currency}} {{speaker_fee}}

Payment Terms:
{{payment_terms}}

Expenses:
- Travel and accommodation as set out in the Travel and Accommodation section
- Other reasonable expenses with prior approval

Total Contract Value: {{currency}} {{fee_amount}}"""),
        section("obligations", "Speaker Obligations", """The Speaker agrees to:

1. Preparation: Adequately prepare for the presentation based on agreed topics and audience
2. Punctuality: Arrive at the venue with sufficient time for setup and sound checks
3. Professionalism: Maintain professional standards throughout the engagement
4. Materials: Provide presentation materials in advance if requested
5. Availability: Be available for a reasonable Q&A session following the presentation
6. Confidentiality: Maintain confidentiality of any proprietary information shared"""),
        section("client_obligations", "Client Obligations", """The Client agrees to:

1. Venue: Provide an appropriate venue with necessary AV equipment at {{event_location}}
2. Payment: Make payment according to agreed terms
3. Information: Provide relevant event details and audience information
4. Support: Ensure adequate technical support during the event
5. Promotion: Handle event promotion and attendee management
6. Communication: Maintain clear communication regarding event logistics"""),
        section("cancellation", "Cancellation Policy", """Cancellation by Client:
- More than 30 days before event: Full refund minus 10% processing fee
- 15-30 days before event: 50% of speaker fee retained
- Less than 15 days before event: Full speaker fee retained

Cancellation by Speaker:
- Speaker may cancel due to illness, emergency, or force majeure
- Reasonable notice must be provided
- Client entitled to full refund if an alternative speaker is not provided

Force Majeure:
Neither party shall be liable for delays or failures due to circumstances beyond their reasonable control."""),
        section("travel_arrangements", "Travel and Accommodation", """Travel Arrangements:
{{travel_details}}

Flight Details:
- Flight Required: {{flight_required}}
- Booking Responsibility: {{flight_booking_responsibility}}
- Class of Travel: {{flight_class}}

Accommodation:
- Hotel Required: {{hotel_required}}
- Hotel Arrangements: {{hotel_arrangements}}
- Check-in/Check-out: {{hotel_dates}}

Ground Transportation:
- Airport Transfers: {{airport_transfers}}
- Local Transportation: {{local_transportation}}

Travel Stipend:
- Amount: {{currency}} {{travel_stipend}}
- Covers: {{travel_stipend_coverage}}"""),
        section("intellectual_property", "Intellectual Property", """Speaker's IP: Speaker retains all rights to their presentation materials, methodologies, and intellectual property.

Usage Rights: Client may record the presentation for internal use only, subject to prior written consent.

Attribution: Any use of Speaker's materials must include proper attribution.

Confidentiality: Both parties agree to maintain confidentiality of proprietary information shared during the engagement."""),
        section("liability", "Limitation of Liability", """Each party's liability under this Agreement shall be limited to the total amount paid under this Agreement.

Neither party shall be liable for any indirect, incidental, or consequential damages.

Both parties agree to maintain appropriate insurance coverage for their respective activities.

Travel Insurance: Speaker agrees to maintain appropriate travel insurance for international engagements."""),
        section("general_terms", "General Terms", """Governing Law: This Agreement shall be governed by the laws of the jurisdiction where the event takes place.

Entire Agreement: This Agreement constitutes the entire agreement between the parties.

Amendments: Any modifications must be in writing and signed by both parties.

Severability: If any provision is deemed invalid, the remainder shall remain in effect.

Assignment: Neither party may assign this Agreement without written consent.

Additional Terms:
{{additional_terms}}"""),
        section("signatures", "Electronic Signatures", _SIGNATURES),
    ),
)

DEFAULT_CONTRACT_TEMPLATE = IN_PERSON_EVENT_TEMPLATE

TEMPLATES = {
    Modality.VIRTUAL: VIRTUAL_EVENT_TEMPLATE,
    Modality.IN_PERSON: IN_PERSON_EVENT_TEMPLATE,
}


def select_template(modality_or_event_type: Union[Modality, str, None]) -> ContractTemplate:
    if isinstance(modality_or_event_type, Modality):
        return TEMPLATES[modality_or_event_type]
    return TEMPLATES[Modality.for_event_type(modality_or_event_type)]


def all_templates() -> Iterable[ContractTemplate]:
    return TEMPLATES.values()
