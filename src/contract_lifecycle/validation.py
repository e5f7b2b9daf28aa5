"""Validation of contract creation and amendment requests.

Validation runs before any contract number or token is drawn, so a rejected
request leaves no trace. Messages are human-readable and returned as a list
in the order the checks run.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional

from src.contract_lifecycle.errors import ContractValidationError
from src.contract_lifecycle.models import ContractAmendment, DealSnapshot, SignerInfo, SpeakerInfo


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _strip(v: Any) -> str:
    return "" if v is None else str(v).strip()


def is_valid_email(value: Any) -> bool:
    return bool(_EMAIL_RE.match(_strip(value)))


def parse_event_date(value: Any) -> Optional[date]:
    """Accept a date, a datetime, or an ISO-8601 string. Returns None if unparseable."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = _strip(value)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def _check_amount(value: Any) -> bool:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(amount) and amount > 0


def _check_event_date(value: Any, today: date, errors: List[str]) -> None:
    parsed = parse_event_date(value)
    if parsed is None:
        errors.append("Event date must be a valid date (YYYY-MM-DD)")
    elif parsed < today:
        errors.append("Event date cannot be in the past")


def validate_contract_request(
    deal: DealSnapshot,
    speaker: Optional[SpeakerInfo] = None,
    client_signer: Optional[SignerInfo] = None,
    *,
    today: date,
) -> ValidationResult:
    errors: List[str] = []

    if not _strip(deal.client_name):
        errors.append("Client name is required")
    if not _strip(deal.client_email):
        errors.append("Client email is required")
    if not _strip(deal.event_title):
        errors.append("Event title is required")
    if not _strip(deal.event_date):
        errors.append("Event date is required")
    if not _strip(deal.event_location):
        errors.append("Event location is required")
    if not _check_amount(deal.deal_value):
        errors.append("Deal value must be greater than 0")

    if _strip(deal.client_email) and not is_valid_email(deal.client_email):
        errors.append("Valid client email is required")

    if speaker is not None:
        if _strip(speaker.email) and not is_valid_email(speaker.email):
            errors.append("Valid speaker email is required")
        if speaker.fee is not None and not _check_amount(speaker.fee):
            errors.append("Speaker fee must be greater than 0")

    if client_signer is not None and not is_valid_email(client_signer.email):
        errors.append("Valid client signer email is required")

    if _strip(deal.event_date):
        _check_event_date(deal.event_date, today, errors)

    return ValidationResult(valid=not errors, errors=errors)


def validate_amendment(amendment: ContractAmendment, *, today: date) -> ValidationResult:
    errors: List[str] = []

    if amendment.title is not None and not _strip(amendment.title):
        errors.append("Title cannot be empty")
    if amendment.event_title is not None and not _strip(amendment.event_title):
        errors.append("Event title cannot be empty")
    if amendment.event_location is not None and not _strip(amendment.event_location):
        errors.append("Event location cannot be empty")
    if amendment.fee_amount is not None and not _check_amount(amendment.fee_amount):
        errors.append("Deal value must be greater than 0")
    if amendment.speaker_fee is not None and not _check_amount(amendment.speaker_fee):
        errors.append("Speaker fee must be greater than 0")
    if amendment.event_date is not None:
        _check_event_date(amendment.event_date, today, errors)

    return ValidationResult(valid=not errors, errors=errors)


def raise_if_invalid(result: ValidationResult) -> None:
    if not result.valid:
        raise ContractValidationError(result.errors)
