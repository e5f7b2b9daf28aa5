import logging
import re
from datetime import timedelta

import pytest

from src.contract_lifecycle.errors import (
    ContractExpired,
    ContractNotFound,
    ContractNotSignable,
    ContractValidationError,
    CreationFailed,
    InvalidToken,
    InvalidTransition,
    VersionLocked,
)
from src.contract_lifecycle.models import (
    ContractAmendment,
    ContractStatus,
    Modality,
    SignatureOrigin,
    SignerInfo,
    SignerType,
    SpeakerInfo,
)
from src.contract_lifecycle.service import ContractService
from src.integrations.clients.mocks.notifications import MockNotificationDispatcher
from src.integrations.contracts.interfaces import NotificationEvent
from src.utils.contracts_config_loader import ContractsConfig

CLIENT = SignerInfo(name="Jordan Reyes", email="jordan@acme.example")
SPEAKER = SignerInfo(name="Dr. Ada Lovelace", email="ada@speakers.example")


def _numbers(monkeypatch, *values):
    it = iter(values)
    monkeypatch.setattr("src.contract_lifecycle.service.generate_contract_number", lambda now: next(it))


# --------------------------------------------------------------------------- #
# Creation
# --------------------------------------------------------------------------- #
def test_create_contract(service, db, contract, clock):
    assert contract.status == ContractStatus.DRAFT
    assert re.fullmatch(r"CTR-20260301-\d{4}", contract.contract_number)
    assert contract.title == "Speaker Engagement Agreement - AI Leadership Summit"
    assert contract.contract_type == "client_speaker"
    assert contract.modality == Modality.IN_PERSON
    assert contract.fee_amount == 15000
    assert contract.speaker.fee == 12000
    assert contract.expires_at == clock.now + timedelta(days=90)
    assert contract.metadata["attendee_count"] == 250

    tokens = {contract.access_token, contract.client_signing_token, contract.speaker_signing_token}
    assert len(tokens) == 3
    assert all(len(t) == 40 for t in tokens)

    [version] = db.list_versions(contract.id)
    assert version.version_number == 1
    assert version.changes_summary == "Initial contract creation"
    assert version.terms == service.render_contract(contract).text


def test_virtual_event_selects_virtual_template(service, make_deal):
    contract = service.create_contract(make_deal(event_type="Webinar", event_platform="Zoom"))
    assert contract.modality == Modality.VIRTUAL
    text = service.render_contract(contract).text
    assert text.startswith("# Virtual Speaker Engagement Agreement")
    assert "- Platform: Zoom" in text


def test_virtual_contract_omits_travel_terms(service, make_deal):
    contract = service.create_contract(make_deal(event_type="virtual", deal_value=10000))
    text = service.render_contract(contract).text
    assert "Virtual Presentation" in text
    assert "Travel and Accommodation" not in text
    assert "Total Contract Value: USD 10,000" in text


def test_speaker_defaults_to_requested_name_and_deal_value(service, make_deal):
    contract = service.create_contract(make_deal())
    assert contract.speaker.name == "Dr. Ada Lovelace"
    assert contract.speaker.email is None
    assert contract.speaker.fee == 15000


def test_invalid_request_allocates_nothing(service, db, make_deal):
    with pytest.raises(ContractValidationError) as exc:
        service.create_contract(make_deal(client_email="nope", event_date="2025-01-01"))
    assert exc.value.errors == ["Valid client email is required", "Event date cannot be in the past"]
    assert db.list_contracts() == []


def test_infinite_deal_value_is_a_validation_error(service, db, make_deal):
    with pytest.raises(ContractValidationError) as exc:
        service.create_contract(make_deal(deal_value=float("inf")))
    assert exc.value.errors == ["Deal value must be greater than 0"]
    assert db.list_contracts() == []


def test_number_collision_is_retried(service, make_deal, monkeypatch):
    _numbers(monkeypatch, "CTR-20260301-0001", "CTR-20260301-0001", "CTR-20260301-0002")
    first = service.create_contract(make_deal())
    second = service.create_contract(make_deal())
    assert first.contract_number == "CTR-20260301-0001"
    assert second.contract_number == "CTR-20260301-0002"


def test_race_on_insert_is_retried(service, db, make_deal, monkeypatch):
    _numbers(monkeypatch, "CTR-20260301-0001", "CTR-20260301-0001", "CTR-20260301-0002")
    monkeypatch.setattr(db, "contract_number_exists", lambda number: False)
    service.create_contract(make_deal())
    second = service.create_contract(make_deal())
    assert second.contract_number == "CTR-20260301-0002"
    assert len(db.list_contracts()) == 2


def test_creation_fails_after_retry_limit(service, db, make_deal, monkeypatch):
    monkeypatch.setattr("src.contract_lifecycle.service.generate_contract_number", lambda now: "CTR-20260301-0001")
    service.create_contract(make_deal())
    with pytest.raises(CreationFailed):
        service.create_contract(make_deal())
    assert len(db.list_contracts()) == 1


# --------------------------------------------------------------------------- #
# Dispatch
# --------------------------------------------------------------------------- #
def test_dispatch_sends_signing_links(service, dispatcher, contract, clock):
    sent = service.dispatch_for_signature(contract.id)
    assert sent.status == ContractStatus.SENT
    assert sent.sent_at == clock.now

    assert {m.recipient_email for m in dispatcher.sent} == {"jordan@acme.example", "ada@speakers.example"}
    [client_msg] = dispatcher.sent_to("jordan@acme.example")
    assert client_msg.event == NotificationEvent.SIGNATURE_REQUESTED
    assert client_msg.subject == "Contract Signature Required - AI Leadership Summit"
    assert f"https://contracts.example.com/contracts/sign/{contract.client_signing_token}" in client_msg.text
    assert contract.speaker_signing_token not in client_msg.text


def test_redispatch_is_idempotent(service, dispatcher, contract, clock):
    first = service.dispatch_for_signature(contract.id)
    clock.advance(days=2)
    service.record_signature(contract.id, SignerType.CLIENT, CLIENT)
    dispatcher.sent.clear()

    again = service.dispatch_for_signature(contract.id)
    assert again.sent_at == first.sent_at
    assert again.status == ContractStatus.PARTIALLY_SIGNED
    assert [m.recipient_email for m in dispatcher.sent] == ["ada@speakers.example"]


def test_client_signer_override_receives_signing_email(service, dispatcher, make_deal, speaker):
    contract = service.create_contract(
        make_deal(),
        speaker=speaker,
        client_signer=SignerInfo(name="Acme Legal", email="legal@acme.example"),
    )
    service.dispatch_for_signature(contract.id)
    assert dispatcher.sent_to("jordan@acme.example") == []
    [msg] = dispatcher.sent_to("legal@acme.example")
    assert msg.recipient_name == "Acme Legal"


def test_dispatch_of_cancelled_contract_is_rejected(service, contract):
    service.cancel_contract(contract.id)
    with pytest.raises(InvalidTransition):
        service.dispatch_for_signature(contract.id)


def test_dispatch_failure_does_not_roll_back(db, config, clock, contract, caplog):
    failing = MockNotificationDispatcher(fail_for={"jordan@acme.example"})
    svc = ContractService(db, dispatcher=failing, config=config, clock=clock)
    with caplog.at_level(logging.ERROR):
        sent = svc.dispatch_for_signature(contract.id)
    assert sent.status == ContractStatus.SENT
    assert db.get_contract(contract.id).status == ContractStatus.SENT
    assert [m.recipient_email for m in failing.sent] == ["ada@speakers.example"]
    assert "Failed to dispatch signature_requested notification" in caplog.text


def test_service_without_dispatcher(db, config, clock, make_deal):
    svc = ContractService(db, config=config, clock=clock)
    contract = svc.create_contract(make_deal())
    assert svc.dispatch_for_signature(contract.id).status == ContractStatus.SENT


# --------------------------------------------------------------------------- #
# Signing
# --------------------------------------------------------------------------- #
def test_sign_with_tokens_executes_contract(service, dispatcher, contract):
    service.dispatch_for_signature(contract.id)
    dispatcher.sent.clear()

    origin = SignatureOrigin(ip_address="198.51.100.4", user_agent="Mozilla/5.0")
    first = service.sign_with_token(contract.client_signing_token, CLIENT, "data:image/png;base64,AA", origin)
    assert first.contract.status == ContractStatus.PARTIALLY_SIGNED
    assert dispatcher.sent == []

    second = service.sign_with_token(contract.speaker_signing_token, SPEAKER, "data:image/png;base64,BB", origin)
    assert second.contract_fully_executed
    executed = [m for m in dispatcher.sent if m.event == NotificationEvent.FULLY_EXECUTED]
    assert {m.recipient_email for m in executed} == {"jordan@acme.example", "ada@speakers.example"}
    assert executed[0].subject == f"Contract Fully Executed - {contract.contract_number}"
    assert f"/contracts/view/{contract.access_token}" in executed[0].text


def test_access_token_cannot_sign(service, contract):
    with pytest.raises(InvalidToken):
        service.sign_with_token(contract.access_token, CLIENT)


def test_unknown_token(service, contract):
    with pytest.raises(InvalidToken):
        service.sign_with_token("x" * 40, CLIENT)
    with pytest.raises(InvalidToken):
        service.get_signing_view("")


def test_expired_link_cannot_sign(service, contract, clock):
    clock.advance(days=91)
    with pytest.raises(ContractExpired):
        service.sign_with_token(contract.client_signing_token, CLIENT)
    view = service.get_signing_view(contract.client_signing_token)
    assert view.expired and not view.can_sign


@pytest.mark.parametrize("close", ["cancel", "execute"])
def test_closed_contract_reports_not_signable_after_expiry(service, contract, clock, close):
    if close == "cancel":
        service.cancel_contract(contract.id)
    else:
        service.sign_with_token(contract.client_signing_token, CLIENT)
        service.sign_with_token(contract.speaker_signing_token, SPEAKER)
    clock.advance(days=91)
    with pytest.raises(ContractNotSignable):
        service.sign_with_token(contract.client_signing_token, CLIENT)


def test_signing_view(service, contract):
    view = service.get_signing_view(contract.speaker_signing_token)
    assert view.signer_type == SignerType.SPEAKER
    assert view.can_sign
    assert view.signatures == []

    service.sign_with_token(contract.speaker_signing_token, SPEAKER)
    view = service.get_signing_view(contract.speaker_signing_token)
    assert not view.can_sign
    assert [s.signer_type for s in view.signatures] == [SignerType.SPEAKER]

    preview = service.get_signing_view(contract.access_token)
    assert preview.signer_type == SignerType.ADMIN
    assert not preview.can_sign


# --------------------------------------------------------------------------- #
# Cancellation
# --------------------------------------------------------------------------- #
@pytest.mark.parametrize("signed", [False, True])
def test_cancel_before_execution(service, dispatcher, contract, signed):
    service.dispatch_for_signature(contract.id)
    if signed:
        service.record_signature(contract.id, SignerType.CLIENT, CLIENT)
    dispatcher.sent.clear()

    cancelled = service.cancel_contract(contract.id)
    assert cancelled.status == ContractStatus.CANCELLED
    assert {m.event for m in dispatcher.sent} == {NotificationEvent.CANCELLED}
    assert len(dispatcher.sent) == 2


def test_cancel_executed_contract_is_rejected(service, contract):
    service.record_signature(contract.id, SignerType.CLIENT, CLIENT)
    service.record_signature(contract.id, SignerType.SPEAKER, SPEAKER)
    with pytest.raises(InvalidTransition):
        service.cancel_contract(contract.id)
    assert service.get_contract(contract.id).status == ContractStatus.FULLY_EXECUTED


def test_cancel_twice_is_rejected(service, contract):
    service.cancel_contract(contract.id)
    with pytest.raises(InvalidTransition):
        service.cancel_contract(contract.id)


# --------------------------------------------------------------------------- #
# Amendments and reads
# --------------------------------------------------------------------------- #
def test_amend_unsigned_contract_adds_version(service, contract):
    amended = service.amend_contract(
        contract.id,
        ContractAmendment(fee_amount=18000, event_location="Dallas, TX"),
        "Fee and venue updated",
        amended_by="ops@speakabout.example",
    )
    assert amended.fee_amount == 18000
    assert amended.event.location == "Dallas, TX"

    versions = service.list_versions(contract.id)
    assert [v.version_number for v in versions] == [1, 2]
    assert versions[1].changes_summary == "Fee and venue updated"
    assert "Total Contract Value: USD 18,000" in versions[1].terms
    assert "- Event Location: Dallas, TX" in versions[1].terms


def test_amend_without_changes_keeps_version(service, contract):
    service.amend_contract(contract.id, ContractAmendment(), "Nothing")
    assert len(service.list_versions(contract.id)) == 1


def test_signed_contract_terms_are_locked(service, contract):
    service.record_signature(contract.id, SignerType.SPEAKER, SPEAKER)
    with pytest.raises(VersionLocked):
        service.amend_contract(contract.id, ContractAmendment(fee_amount=1), "Late change")


def test_list_and_get(service, contract, make_deal):
    other = service.create_contract(make_deal(event_title="Data Week"))
    service.dispatch_for_signature(other.id)

    assert {c.id for c in service.list_contracts()} == {contract.id, other.id}
    assert [c.id for c in service.list_contracts(status=ContractStatus.SENT)] == [other.id]
    assert service.get_contract_by_token(other.client_signing_token).id == other.id

    with pytest.raises(ContractNotFound):
        service.get_contract("missing")


def test_default_config_values():
    cfg = ContractsConfig()
    assert cfg.token_length == 40
    assert cfg.expiry_days == 90
    assert cfg.signing_link("abc") == "http://localhost:3000/contracts/sign/abc"
