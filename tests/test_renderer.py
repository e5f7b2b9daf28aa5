from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from src.contract_lifecycle.errors import MissingField
from src.contract_lifecycle.models import (
    ClientSnapshot,
    ContractRecord,
    ContractStatus,
    EventSnapshot,
    Modality,
    SpeakerSnapshot,
)
from src.contract_lifecycle.renderer import (
    build_placeholder_values,
    format_long_date,
    format_money,
    render_contract,
    render_html,
    render_text,
)
from src.contract_lifecycle.templates import ContractTemplate, section, select_template

GENERATED = datetime(2026, 3, 1, 9, 30)


def build_record(**overrides) -> ContractRecord:
    data = dict(
        id="c-1",
        contract_number="CTR-20260301-0042",
        title="Speaker Engagement Agreement - AI Leadership Summit",
        modality=Modality.IN_PERSON,
        status=ContractStatus.DRAFT,
        fee_amount=15000.0,
        payment_terms="Payment due within 30 days of event completion",
        currency="USD",
        event=EventSnapshot(title="AI Leadership Summit", date=date(2026, 6, 15), location="Austin, TX", type="Conference"),
        client=ClientSnapshot(name="Jordan Reyes", email="jordan@acme.example", company="Acme Corp"),
        speaker=SpeakerSnapshot(name="Dr. Ada Lovelace", email="ada@speakers.example", fee=12000.0),
        generated_at=GENERATED,
        expires_at=GENERATED + timedelta(days=90),
        access_token="a" * 40,
        client_signing_token="c" * 40,
        speaker_signing_token="s" * 40,
        metadata={"attendee_count": 250},
    )
    data.update(overrides)
    return ContractRecord(**data)


def test_format_helpers():
    assert format_long_date(date(2027, 3, 5)) == "March 5, 2027"
    assert format_money(15000) == "15,000"
    assert format_money(1234.5) == "1,234.50"


def test_render_is_deterministic():
    record = build_record()
    assert render_text(record) == render_text(record)
    assert render_html(record) == render_html(record)


def test_contract_date_comes_from_generated_at():
    text = render_text(build_record())
    assert "entered into on March 1, 2026" in text
    assert "Generated Date: March 1, 2026" in text


def test_rendered_output_has_no_unresolved_markers():
    for modality in (Modality.VIRTUAL, Modality.IN_PERSON):
        rendered = render_contract(build_record(modality=modality))
        assert "{{" not in rendered.text
        assert "{{" not in rendered.html


def test_in_person_contract_fields():
    text = render_text(build_record())
    assert text.startswith("# In-Person Speaker Engagement Agreement\n\n## Parties\n\n")
    assert "Client: Jordan Reyes (Acme Corp)" in text
    assert "Speaker Fee: USD 12,000" in text
    assert "Total Contract Value: USD 15,000" in text
    assert "- Event Location: Austin, TX" in text
    assert "- Expected Attendees: 250" in text
    assert "## Travel and Accommodation" in text
    assert "No travel required" in text


def test_in_person_travel_terms():
    record = build_record(
        metadata={
            "terms": {
                "travel_required": True,
                "flight_required": True,
                "flight_class": "Business",
                "hotel_required": True,
                "travel_stipend": 500,
            }
        }
    )
    text = render_text(record)
    assert "Travel arrangements required as detailed below" in text
    assert "- Flight Required: Yes" in text
    assert "- Booking Responsibility: Client to book and pay directly" in text
    assert "- Class of Travel: Business" in text
    assert "- Hotel Required: Yes" in text
    assert "- Amount: USD 500" in text


def test_virtual_contract_uses_virtual_terms():
    record = build_record(
        modality=Modality.VIRTUAL,
        event=EventSnapshot(title="Remote AI Day", date=date(2026, 6, 15), location="Online", type="webinar"),
        metadata={"terms": {"event_platform": "Zoom", "governing_law": "New York, USA"}},
    )
    text = render_text(record)
    assert text.startswith("# Virtual Speaker Engagement Agreement")
    assert "- Platform: Zoom" in text
    assert "- Event Type: Virtual Presentation" in text
    assert "governed by the laws of New York, USA" in text
    assert "- Time Zone: PST" in text
    assert "Travel and Accommodation" not in text


def test_missing_optional_values_use_sentinels():
    record = build_record(
        client=ClientSnapshot(name="Jordan Reyes", email="jordan@acme.example"),
        metadata={},
    )
    values = build_placeholder_values(record)
    assert values["client_phone"] == "N/A"
    assert values["attendee_count"] == "TBD"
    assert values["client_company"] == "Jordan Reyes"
    assert values["additional_terms"] == "No additional terms specified"


@pytest.mark.parametrize("modality", [Modality.IN_PERSON, Modality.VIRTUAL])
def test_sparse_record_still_renders_every_section(modality):
    record = build_record(
        modality=modality,
        client=ClientSnapshot(name="Jordan Reyes", email="jordan@acme.example"),
        speaker=SpeakerSnapshot(name="Dr. Ada Lovelace"),
        metadata={},
    )
    template = select_template(modality)
    html = render_html(record)
    for section_id in template.section_ids():
        assert f'<section id="section-{section_id}">' in html


def test_speaker_fee_falls_back_to_deal_value():
    record = build_record(speaker=SpeakerSnapshot(name="Dr. Ada Lovelace"))
    assert build_placeholder_values(record)["speaker_fee"] == "15,000"


def test_html_escapes_user_supplied_values():
    record = build_record(client=ClientSnapshot(name="<script>alert(1)</script>", email="x@acme.example"))
    html = render_html(record)
    assert "<script>" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert '<section id="section-parties">' in html
    assert "<title>Contract - CTR-20260301-0042</title>" in html


def test_placeholder_without_value_raises_missing_field():
    template = ContractTemplate(
        version="test",
        title="Test",
        modality=Modality.IN_PERSON,
        vocabulary=frozenset({"client_name", "venue_code"}),
        sections=(section("parties", "Parties", "{{client_name}} at {{venue_code}}"),),
    )
    with pytest.raises(MissingField) as exc:
        render_text(build_record(), template=template)
    assert exc.value.field == "venue_code"
    assert exc.value.section_id == "parties"


def test_render_ignores_mutable_lifecycle_fields():
    record = build_record()
    signed = replace(record, status=ContractStatus.FULLY_EXECUTED, updated_at=GENERATED + timedelta(days=3))
    assert render_text(record) == render_text(signed)
