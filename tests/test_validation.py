from datetime import date

import pytest

from src.contract_lifecycle.errors import ContractValidationError
from src.contract_lifecycle.models import ContractAmendment, SignerInfo, SpeakerInfo
from src.contract_lifecycle.validation import (
    is_valid_email,
    parse_event_date,
    raise_if_invalid,
    validate_amendment,
    validate_contract_request,
)

TODAY = date(2026, 3, 1)


def test_valid_request_passes(make_deal):
    result = validate_contract_request(make_deal(), SpeakerInfo(name="Ada", email="ada@speakers.example"), today=TODAY)
    assert result.valid
    assert result.errors == []


def test_missing_required_fields_are_all_reported(make_deal):
    deal = make_deal(client_name="", client_email=" ", event_title="", event_date=None, event_location="", deal_value=0)
    result = validate_contract_request(deal, today=TODAY)
    assert not result.valid
    assert result.errors == [
        "Client name is required",
        "Client email is required",
        "Event title is required",
        "Event date is required",
        "Event location is required",
        "Deal value must be greater than 0",
    ]


def test_malformed_client_email(make_deal):
    result = validate_contract_request(make_deal(client_email="jordan-at-acme"), today=TODAY)
    assert result.errors == ["Valid client email is required"]


def test_speaker_and_signer_checks(make_deal):
    result = validate_contract_request(
        make_deal(),
        SpeakerInfo(name="Ada", email="not-an-email", fee=0),
        SignerInfo(name="Legal", email="legal@"),
        today=TODAY,
    )
    assert result.errors == [
        "Valid speaker email is required",
        "Speaker fee must be greater than 0",
        "Valid client signer email is required",
    ]


@pytest.mark.parametrize("amount", [float("inf"), float("-inf"), float("nan"), "1e400"])
def test_non_finite_amounts_are_rejected(make_deal, amount):
    result = validate_contract_request(
        make_deal(deal_value=amount),
        SpeakerInfo(name="Ada", email="ada@speakers.example", fee=amount),
        today=TODAY,
    )
    assert result.errors == ["Deal value must be greater than 0", "Speaker fee must be greater than 0"]


def test_event_date_in_the_past(make_deal):
    result = validate_contract_request(make_deal(event_date="2026-02-28"), today=TODAY)
    assert result.errors == ["Event date cannot be in the past"]


def test_event_date_today_is_allowed(make_deal):
    assert validate_contract_request(make_deal(event_date="2026-03-01"), today=TODAY).valid


def test_unparseable_event_date(make_deal):
    result = validate_contract_request(make_deal(event_date="next tuesday"), today=TODAY)
    assert result.errors == ["Event date must be a valid date (YYYY-MM-DD)"]


def test_parse_event_date_accepts_iso_datetime():
    assert parse_event_date("2026-06-15T18:00:00Z") == date(2026, 6, 15)
    assert parse_event_date(date(2026, 6, 15)) == date(2026, 6, 15)
    assert parse_event_date("") is None


@pytest.mark.parametrize("email, ok", [("a@b.co", True), ("a@b", False), ("a b@c.de", False), (None, False)])
def test_is_valid_email(email, ok):
    assert is_valid_email(email) is ok


def test_amendment_validation():
    result = validate_amendment(ContractAmendment(fee_amount=-5, event_title=" "), today=TODAY)
    assert result.errors == ["Event title cannot be empty", "Deal value must be greater than 0"]


def test_raise_if_invalid_carries_errors(make_deal):
    with pytest.raises(ContractValidationError) as exc:
        raise_if_invalid(validate_contract_request(make_deal(deal_value=-1), today=TODAY))
    assert exc.value.errors == ["Deal value must be greater than 0"]
