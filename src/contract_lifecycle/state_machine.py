"""
Contract status transitions.

    draft -> sent -> partially_signed -> fully_executed
      \\________\\__________\\___________-> cancelled

`fully_executed` and `cancelled` are terminal. Signature-driven status is never
incremented per event; it is recomputed from the current signature set, so
resubmissions and out-of-order signatures land on the same answer.

Every function here returns a ContractPatch for the caller to persist inside
the same repository transaction it read the record in.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, Optional

from src.contract_lifecycle.errors import ContractNotSignable, InvalidTransition
from src.contract_lifecycle.models import ContractPatch, ContractRecord, ContractStatus, Signature, SignerType

logger = logging.getLogger(__name__)

_SIGNING = frozenset({ContractStatus.PARTIALLY_SIGNED, ContractStatus.FULLY_EXECUTED})

TRANSITIONS: Dict[ContractStatus, FrozenSet[ContractStatus]] = {
    ContractStatus.DRAFT: frozenset({ContractStatus.SENT, ContractStatus.CANCELLED}) | _SIGNING,
    ContractStatus.SENT: frozenset({ContractStatus.SENT, ContractStatus.CANCELLED}) | _SIGNING,
    ContractStatus.PARTIALLY_SIGNED: frozenset({ContractStatus.CANCELLED}) | _SIGNING,
    ContractStatus.FULLY_EXECUTED: frozenset(),
    ContractStatus.CANCELLED: frozenset(),
}

EXECUTION_ROLES = frozenset({SignerType.CLIENT, SignerType.SPEAKER})


def normalize_status(status: ContractStatus) -> ContractStatus:
    if status in (ContractStatus.CLIENT_SIGNED, ContractStatus.SPEAKER_SIGNED):
        return ContractStatus.PARTIALLY_SIGNED
    return status


def can_transition(current: ContractStatus, target: ContractStatus) -> bool:
    return target in TRANSITIONS[normalize_status(current)]


def _require(current: ContractStatus, target: ContractStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)


def is_signable(record: ContractRecord) -> bool:
    return not normalize_status(record.status).is_terminal


def ensure_signable(record: ContractRecord) -> None:
    if not is_signable(record):
        raise ContractNotSignable(record.id, record.status.value)


def plan_dispatch(record: ContractRecord, now: datetime) -> ContractPatch:
    """draft -> sent. Resending keeps the original sent_at and leaves signed states alone."""
    current = normalize_status(record.status)
    if current.is_terminal:
        raise InvalidTransition(record.status.value, ContractStatus.SENT.value)

    patch = ContractPatch()
    if current == ContractStatus.DRAFT:
        patch.status = ContractStatus.SENT
    if record.sent_at is None:
        patch.sent_at = now
    return patch


def plan_cancel(record: ContractRecord) -> ContractPatch:
    _require(record.status, ContractStatus.CANCELLED)
    return ContractPatch(status=ContractStatus.CANCELLED)


def signed_roles(signatures: Iterable[Signature]) -> FrozenSet[SignerType]:
    return frozenset(s.signer_type for s in signatures if s.verified)


def recompute_status(record: ContractRecord, signatures: Iterable[Signature], now: datetime) -> ContractPatch:
    """Derive status and per-party signed_at from the full signature set."""
    signatures = list(signatures)
    by_role: Dict[SignerType, Signature] = {s.signer_type: s for s in signatures if s.verified}
    roles = frozenset(by_role) & EXECUTION_ROLES

    patch = ContractPatch()
    client_sig: Optional[Signature] = by_role.get(SignerType.CLIENT)
    speaker_sig: Optional[Signature] = by_role.get(SignerType.SPEAKER)
    if client_sig is not None:
        patch.client_signed_at = client_sig.signed_at
    if speaker_sig is not None:
        patch.speaker_signed_at = speaker_sig.signed_at

    if roles == EXECUTION_ROLES:
        target = ContractStatus.FULLY_EXECUTED
    elif roles:
        target = ContractStatus.PARTIALLY_SIGNED
    else:
        return patch

    if target != normalize_status(record.status):
        _require(record.status, target)
        patch.status = target
        logger.info("Contract %s status %s -> %s", record.id, record.status.value, target.value)
    elif record.status != target:
        # Legacy client_signed/speaker_signed rows are rewritten to the canonical value.
        patch.status = target

    if target == ContractStatus.FULLY_EXECUTED and record.completed_at is None:
        patch.completed_at = now
    return patch
