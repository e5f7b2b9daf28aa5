"""
Contract renderer.

Turns a ContractRecord into the canonical agreement text and an HTML preview.
Rendering is a pure function of (template, record, defaults): it never reads
the clock, so the text stored in a ContractVersion is byte-for-byte what a
signer is later shown.
"""

from __future__ import annotations

import html
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from src.contract_lifecycle.errors import MissingField
from src.contract_lifecycle.models import ContractRecord, Modality, RenderedContract
from src.contract_lifecycle.templates import ContractTemplate, Placeholder, Section, select_template
from src.utils.contracts_config_loader import TemplateDefaults


def format_long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def format_money(value: Any) -> str:
    amount = Decimal(str(value))
    if amount == amount.to_integral_value():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


def _text_or(value: Any, fallback: str) -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def build_placeholder_values(record: ContractRecord, defaults: Optional[TemplateDefaults] = None) -> Dict[str, str]:
    """Flatten a contract into placeholder -> display string."""
    defaults = defaults or TemplateDefaults()
    tbd = defaults.unknown_value
    na = defaults.not_applicable
    terms: Dict[str, Any] = record.metadata.get("terms") or {}

    speaker_fee = record.speaker.fee if record.speaker.fee is not None else record.fee_amount
    attendees = record.metadata.get("attendee_count")

    values: Dict[str, str] = {
        "contract_number": record.contract_number,
        "contract_date": format_long_date(record.generated_at.date()),
        "client_name": _text_or(record.client.name, tbd),
        "client_company": _text_or(record.client.company, _text_or(record.client.name, tbd)),
        "client_email": _text_or(record.client.email, tbd),
        "client_phone": _text_or(record.client.phone, na),
        "speaker_name": _text_or(record.speaker.name, tbd),
        "speaker_email": _text_or(record.speaker.email, tbd),
        "speaker_fee": format_money(speaker_fee),
        "event_title": _text_or(record.event.title, tbd),
        "event_date": format_long_date(record.event.date),
        "event_location": _text_or(record.event.location, tbd),
        "event_type": _text_or(record.event.type, defaults.event_type),
        "attendee_count": str(attendees) if attendees else tbd,
        "fee_amount": format_money(record.fee_amount),
        "currency": _text_or(record.currency, tbd),
        "payment_terms": _text_or(record.payment_terms, defaults.payment_terms),
        "additional_terms": _text_or(record.additional_terms, defaults.additional_terms),
    }

    if record.modality == Modality.VIRTUAL:
        virtual = defaults.virtual
        for key in (
            "event_platform",
            "event_timezone",
            "presentation_duration",
            "recording_usage",
            "recording_permission",
            "recording_distribution",
            "recording_usage_period",
            "governing_law",
        ):
            values[key] = _text_or(terms.get(key), getattr(virtual, key))
    else:
        travel = defaults.travel
        flight = bool(terms.get("flight_required"))
        hotel = bool(terms.get("hotel_required"))
        stipend = terms.get("travel_stipend")
        values.update({
            "travel_details": (
                "Travel arrangements required as detailed below"
                if terms.get("travel_required")
                else "No travel required"
            ),
            "flight_required": "Yes" if flight else "No",
            "flight_booking_responsibility": travel.booking_responsibility if flight else na,
            "flight_class": _text_or(terms.get("flight_class"), travel.flight_class),
            "hotel_required": "Yes" if hotel else "No",
            "hotel_arrangements": travel.booking_responsibility if hotel else na,
            "hotel_dates": _text_or(terms.get("hotel_dates"), travel.hotel_dates),
            "airport_transfers": _text_or(terms.get("airport_transfers"), travel.airport_transfers),
            "local_transportation": _text_or(terms.get("local_transportation"), travel.local_transportation),
            "travel_stipend": format_money(stipend) if stipend is not None else "0",
            "travel_stipend_coverage": _text_or(terms.get("travel_stipend_coverage"), travel.travel_stipend_coverage),
        })

    return values


def _render_section_body(section: Section, values: Dict[str, str]) -> str:
    parts: List[str] = []
    for segment in section.segments:
        if isinstance(segment, Placeholder):
            if segment.name not in values:
                raise MissingField(segment.name, section.id)
            parts.append(values[segment.name])
        else:
            parts.append(segment)
    return "".join(parts)


def render_text(record: ContractRecord, template: Optional[ContractTemplate] = None, defaults: Optional[TemplateDefaults] = None) -> str:
    template = template or select_template(record.modality)
    values = build_placeholder_values(record, defaults)

    out = [f"# {template.title}\n\n"]
    for section in template.sections:
        out.append(f"## {section.title}\n\n")
        out.append(_render_section_body(section, values))
        out.append("\n\n")
    return "".join(out)


_HTML_STYLE = """body { font-family: Georgia, 'Times New Roman', serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 40px 20px; }
.contract-title { text-align: center; color: #1E68C6; border-bottom: 3px solid #1E68C6; padding-bottom: 20px; }
.section-title { color: #1E68C6; border-bottom: 1px solid #e0e0e0; padding-bottom: 10px; margin-top: 40px; }
li { margin: 8px 0 8px 20px; }
@media print { body { margin: 0; padding: 20px; } section { page-break-inside: avoid; } }"""


def _body_to_html(body: str) -> str:
    blocks: List[str] = []
    for paragraph in body.split("\n\n"):
        lines = [line for line in paragraph.split("\n") if line.strip()]
        if not lines:
            continue
        bullets = [line for line in lines if line.startswith("- ")]
        if bullets and len(bullets) == len(lines) - 1 and not lines[0].startswith("- "):
            items = "".join(f"<li>{html.escape(line[2:])}</li>" for line in bullets)
            blocks.append(f"<p>{html.escape(lines[0])}</p><ul>{items}</ul>")
        else:
            blocks.append("<p>" + "<br>".join(html.escape(line) for line in lines) + "</p>")
    return "\n".join(blocks)


def render_html(record: ContractRecord, template: Optional[ContractTemplate] = None, defaults: Optional[TemplateDefaults] = None) -> str:
    template = template or select_template(record.modality)
    values = build_placeholder_values(record, defaults)

    sections = []
    for section in template.sections:
        body = _render_section_body(section, values)
        sections.append(
            f'<section id="section-{section.id}">\n'
            f'<h2 class="section-title">{html.escape(section.title)}</h2>\n'
            f"{_body_to_html(body)}\n"
            f"</section>"
        )

    return (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n'
        "<head>\n"
        '<meta charset="UTF-8">\n'
        f"<title>Contract - {html.escape(record.contract_number)}</title>\n"
        f"<style>\n{_HTML_STYLE}\n</style>\n"
        "</head>\n"
        "<body>\n"
        f'<h1 class="contract-title">{html.escape(template.title)}</h1>\n'
        + "\n".join(sections)
        + "\n</body>\n</html>\n"
    )


def render_contract(record: ContractRecord, defaults: Optional[TemplateDefaults] = None) -> RenderedContract:
    template = select_template(record.modality)
    return RenderedContract(
        text=render_text(record, template, defaults),
        html=render_html(record, template, defaults),
    )
