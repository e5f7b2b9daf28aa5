"""
Contract lifecycle service.

Entry point used by the API layer. Wires validation, token issuance, rendering,
the status machine and the signature recorder over an injected repository and
notification dispatcher. The service holds no global state; build one at
process start (see src/api/main.py) or per test.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional

from src.contract_lifecycle.emails import (
    build_cancellation_notice,
    build_executed_confirmation,
    build_signing_request,
)
from src.contract_lifecycle.errors import (
    ContractNotFound,
    CreationFailed,
    DuplicateIdentifier,
    InvalidToken,
    VersionLocked,
)
from src.contract_lifecycle.models import (
    TEMPLATE_TERM_FIELDS,
    ClientSnapshot,
    ContractAmendment,
    ContractPatch,
    ContractRecord,
    ContractStatus,
    ContractVersion,
    DealSnapshot,
    EventSnapshot,
    Modality,
    RenderedContract,
    Signature,
    SignatureMethod,
    SignatureOrigin,
    SignatureResult,
    SignerInfo,
    SignerType,
    SigningView,
    SpeakerInfo,
    SpeakerSnapshot,
    apply_patch,
)
from src.contract_lifecycle.renderer import render_contract, render_text
from src.contract_lifecycle.signatures import SignatureRecorder
from src.contract_lifecycle.state_machine import is_signable, plan_cancel, plan_dispatch
from src.contract_lifecycle.tokens import generate_contract_number, issue_contract_tokens
from src.contract_lifecycle.validation import (
    parse_event_date,
    raise_if_invalid,
    validate_amendment,
    validate_contract_request,
)
from src.integrations.contracts.interfaces import (
    ContractRepository,
    NotificationDispatcher,
    NotificationMessage,
)
from src.utils.contracts_config_loader import ContractsConfig

logger = logging.getLogger(__name__)

SIGNING_ROLES = (SignerType.CLIENT, SignerType.SPEAKER)


def resolve_signer_role(contract: ContractRecord, token: str) -> Optional[SignerType]:
    """Which role a presented token belongs to, or None."""
    for role in (SignerType.CLIENT, SignerType.SPEAKER, SignerType.ADMIN):
        if hmac.compare_digest(token, contract.token_for(role)):
            return role
    return None


class ContractService:
    def __init__(
        self,
        repository: ContractRepository,
        dispatcher: Optional[NotificationDispatcher] = None,
        config: Optional[ContractsConfig] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.repository = repository
        self.dispatcher = dispatcher
        self.config = config or ContractsConfig()
        self.clock = clock
        self.signatures = SignatureRecorder(repository, clock=clock)

    # ------------------------------------------------------------------ #
    # Creation
    # ------------------------------------------------------------------ #
    def create_contract(
        self,
        deal: DealSnapshot,
        speaker: Optional[SpeakerInfo] = None,
        additional_terms: Optional[str] = None,
        client_signer: Optional[SignerInfo] = None,
        created_by: Optional[str] = None,
    ) -> ContractRecord:
        now = self.clock()
        raise_if_invalid(validate_contract_request(deal, speaker, client_signer, today=now.date()))

        draft = self._draft_record(deal, speaker, additional_terms, client_signer, created_by, now)

        for attempt in range(1, self.config.number_retry_limit + 1):
            number = generate_contract_number(now)
            if self.repository.contract_number_exists(number):
                logger.warning("Contract number %s already taken (attempt %d)", number, attempt)
                continue

            tokens = issue_contract_tokens(self.config.token_length)
            record = replace(
                draft,
                id=str(uuid.uuid4()),
                contract_number=number,
                access_token=tokens.access,
                client_signing_token=tokens.client_signing,
                speaker_signing_token=tokens.speaker_signing,
            )
            version = ContractVersion(
                id=str(uuid.uuid4()),
                contract_id=record.id,
                version_number=1,
                terms=render_text(record, defaults=self.config.templates),
                changes_summary="Initial contract creation",
                created_by=created_by,
                created_at=now,
            )
            try:
                created = self.repository.create_contract(record, version)
            except DuplicateIdentifier:
                logger.warning("Contract number %s claimed concurrently (attempt %d)", number, attempt)
                continue

            logger.info("Created contract %s (%s) for deal %s", created.id, created.contract_number, deal.deal_id)
            return created

        raise CreationFailed(
            f"Could not allocate a unique contract number after {self.config.number_retry_limit} attempts"
        )

    def _draft_record(
        self,
        deal: DealSnapshot,
        speaker: Optional[SpeakerInfo],
        additional_terms: Optional[str],
        client_signer: Optional[SignerInfo],
        created_by: Optional[str],
        now: datetime,
    ) -> ContractRecord:
        speaker = speaker or SpeakerInfo(name=deal.speaker_requested or "")
        event_title = deal.event_title.strip()

        metadata = {
            "attendee_count": deal.attendee_count,
            "created_by": created_by,
            "terms": {name: getattr(deal, name) for name in TEMPLATE_TERM_FIELDS if getattr(deal, name) is not None},
        }
        if client_signer is not None:
            metadata["client_signer"] = {"name": client_signer.name, "email": client_signer.email}

        return ContractRecord(
            id="",
            contract_number="",
            title=f"Speaker Engagement Agreement - {event_title}",
            modality=Modality.for_event_type(deal.event_type),
            status=ContractStatus.DRAFT,
            fee_amount=float(deal.deal_value),
            payment_terms=self.config.templates.payment_terms,
            currency=(deal.currency or self.config.default_currency).upper(),
            event=EventSnapshot(
                title=event_title,
                date=parse_event_date(deal.event_date),
                location=deal.event_location.strip(),
                type=deal.event_type,
            ),
            client=ClientSnapshot(
                name=deal.client_name.strip(),
                email=deal.client_email.strip(),
                company=deal.company,
                phone=deal.client_phone,
            ),
            speaker=SpeakerSnapshot(
                name=speaker.name or deal.speaker_requested,
                email=speaker.email,
                fee=float(speaker.fee) if speaker.fee is not None else float(deal.deal_value),
            ),
            generated_at=now,
            expires_at=now + timedelta(days=self.config.expiry_days),
            access_token="",
            client_signing_token="",
            speaker_signing_token="",
            deal_id=deal.deal_id,
            additional_terms=additional_terms,
            updated_at=now,
            metadata=metadata,
        )

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def get_contract(self, contract_id: str) -> ContractRecord:
        contract = self.repository.get_contract(contract_id)
        if contract is None:
            raise ContractNotFound(contract_id)
        return contract

    def get_contract_by_token(self, token: str) -> ContractRecord:
        contract = self.repository.get_contract_by_token(token) if token else None
        if contract is None:
            logger.info("Token lookup did not resolve to a contract")
            raise InvalidToken()
        return contract

    def list_contracts(self, status: Optional[ContractStatus] = None) -> List[ContractRecord]:
        return self.repository.list_contracts(status=status)

    def list_signatures(self, contract_id: str) -> List[Signature]:
        self.get_contract(contract_id)
        return self.repository.list_signatures(contract_id)

    def list_versions(self, contract_id: str) -> List[ContractVersion]:
        self.get_contract(contract_id)
        return self.repository.list_versions(contract_id)

    def render_contract(self, contract: ContractRecord) -> RenderedContract:
        return render_contract(contract, defaults=self.config.templates)

    def get_signing_view(self, token: str) -> SigningView:
        contract = self.get_contract_by_token(token)
        role = resolve_signer_role(contract, token)
        if role is None:
            raise InvalidToken()
        signatures = self.repository.list_signatures(contract.id)
        expired = contract.is_expired(self.clock())
        already_signed = any(s.signer_type == role for s in signatures)
        return SigningView(
            contract=contract,
            signer_type=role,
            signatures=signatures,
            can_sign=role in SIGNING_ROLES and not already_signed and not expired and is_signable(contract),
            expired=expired,
        )

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #
    def dispatch_for_signature(self, contract_id: str) -> ContractRecord:
        now = self.clock()
        with self.repository.transaction(contract_id) as uow:
            patch = plan_dispatch(uow.contract, now)
            contract = uow.update(patch, now) if not patch.is_empty() else uow.contract
            signed = {s.signer_type for s in uow.signatures()}

        logger.info("Contract %s dispatched for signature (status=%s)", contract.id, contract.status.value)
        self._notify(
            build_signing_request(
                contract,
                role,
                self.config.signing_link(contract.token_for(role)),
                self.config.company_name,
            )
            for role in SIGNING_ROLES
            if role not in signed
        )
        return contract

    def record_signature(
        self,
        contract_id: str,
        signer_type: SignerType,
        signer: SignerInfo,
        signature_data: Optional[str] = None,
        origin: Optional[SignatureOrigin] = None,
        *,
        method: SignatureMethod = SignatureMethod.DIGITAL_PAD,
        token: Optional[str] = None,
        reject_expired: bool = False,
    ) -> SignatureResult:
        result = self.signatures.record(
            contract_id,
            signer_type,
            signer,
            signature_data,
            method=method,
            origin=origin,
            token=token,
            reject_expired=reject_expired,
        )
        if result.contract_fully_executed:
            contract = result.contract
            self._notify(
                build_executed_confirmation(
                    contract,
                    role,
                    self.config.view_link(contract.access_token),
                    self.config.company_name,
                )
                for role in SIGNING_ROLES
            )
        return result

    def sign_with_token(
        self,
        token: str,
        signer: SignerInfo,
        signature_data: Optional[str] = None,
        origin: Optional[SignatureOrigin] = None,
        *,
        method: SignatureMethod = SignatureMethod.DIGITAL_PAD,
    ) -> SignatureResult:
        contract = self.get_contract_by_token(token)
        role = resolve_signer_role(contract, token)
        if role not in SIGNING_ROLES:
            # The access token is a read-only preview link.
            raise InvalidToken()
        return self.record_signature(
            contract.id,
            role,
            signer,
            signature_data,
            origin,
            method=method,
            token=token,
            reject_expired=True,
        )

    def cancel_contract(self, contract_id: str) -> ContractRecord:
        now = self.clock()
        with self.repository.transaction(contract_id) as uow:
            contract = uow.update(plan_cancel(uow.contract), now)

        logger.info("Contract %s cancelled", contract_id)
        self._notify(build_cancellation_notice(contract, role, self.config.company_name) for role in SIGNING_ROLES)
        return contract

    def amend_contract(
        self,
        contract_id: str,
        amendment: ContractAmendment,
        changes_summary: str,
        amended_by: Optional[str] = None,
    ) -> ContractRecord:
        now = self.clock()
        raise_if_invalid(validate_amendment(amendment, today=now.date()))

        with self.repository.transaction(contract_id) as uow:
            current = uow.contract
            if uow.signatures() or current.status not in (ContractStatus.DRAFT, ContractStatus.SENT):
                raise VersionLocked(contract_id)

            patch = ContractPatch(
                title=amendment.title,
                fee_amount=float(amendment.fee_amount) if amendment.fee_amount is not None else None,
                payment_terms=amendment.payment_terms,
                additional_terms=amendment.additional_terms,
            )
            if amendment.event_title is not None or amendment.event_date is not None or amendment.event_location is not None:
                patch.event = replace(
                    current.event,
                    title=(amendment.event_title or current.event.title).strip(),
                    date=parse_event_date(amendment.event_date) if amendment.event_date is not None else current.event.date,
                    location=(amendment.event_location or current.event.location).strip(),
                )
            if amendment.speaker_fee is not None:
                patch.speaker = replace(current.speaker, fee=float(amendment.speaker_fee))

            if patch.is_empty():
                return current

            terms = render_text(apply_patch(current, patch), defaults=self.config.templates)
            contract = uow.update(patch, now)
            version = uow.append_version(terms, changes_summary, amended_by, now)

        logger.info("Contract %s amended to version %d", contract_id, version.version_number)
        return contract

    # ------------------------------------------------------------------ #
    # Notifications
    # ------------------------------------------------------------------ #
    def _notify(self, messages: Iterable[Optional[NotificationMessage]]) -> None:
        if self.dispatcher is None:
            logger.warning("No notification dispatcher configured. Contract emails not sent.")
            return
        for message in messages:
            if message is None:
                continue
            try:
                self.dispatcher.dispatch(message)
            except Exception:
                # Transition already committed.
                logger.exception(
                    "Failed to dispatch %s notification for contract %s",
                    message.event.value,
                    message.contract_id,
                )
