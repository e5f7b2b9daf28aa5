import threading

import pytest

from src.contract_lifecycle.errors import ContractNotFound, ContractNotSignable, InvalidToken
from src.contract_lifecycle.models import ContractStatus, SignatureOrigin, SignerInfo, SignerType
from src.contract_lifecycle.signatures import SignatureRecorder

CLIENT = SignerInfo(name="Jordan Reyes", email="jordan@acme.example", title="VP Events")
SPEAKER = SignerInfo(name="Dr. Ada Lovelace", email="ada@speakers.example")


@pytest.fixture
def recorder(db, clock):
    return SignatureRecorder(db, clock=clock)


def test_first_signature_marks_partially_signed(recorder, db, contract):
    result = recorder.record(
        contract.id,
        SignerType.CLIENT,
        CLIENT,
        "data:image/png;base64,AAAA",
        origin=SignatureOrigin(ip_address="203.0.113.7", user_agent="pytest"),
    )
    assert not result.contract_fully_executed
    assert result.contract.status == ContractStatus.PARTIALLY_SIGNED
    assert result.contract.client_signed_at is not None

    [sig] = db.list_signatures(contract.id)
    assert sig.signer_title == "VP Events"
    assert sig.ip_address == "203.0.113.7"
    assert sig.verified


@pytest.mark.parametrize("order", [(SignerType.CLIENT, SignerType.SPEAKER), (SignerType.SPEAKER, SignerType.CLIENT)])
def test_both_parties_execute_regardless_of_order(recorder, contract, order, clock):
    signers = {SignerType.CLIENT: CLIENT, SignerType.SPEAKER: SPEAKER}
    first = recorder.record(contract.id, order[0], signers[order[0]])
    clock.advance(minutes=10)
    second = recorder.record(contract.id, order[1], signers[order[1]])

    assert not first.contract_fully_executed
    assert second.contract_fully_executed
    assert second.contract.status == ContractStatus.FULLY_EXECUTED
    assert second.contract.completed_at == clock.now


def test_resubmission_replaces_signature_in_place(recorder, db, contract, clock):
    first = recorder.record(contract.id, SignerType.CLIENT, CLIENT, "first")
    clock.advance(hours=1)
    second = recorder.record(contract.id, SignerType.CLIENT, CLIENT, "second")

    sigs = db.list_signatures(contract.id)
    assert len(sigs) == 1
    assert sigs[0].id == first.signature_id == second.signature_id
    assert sigs[0].signature_data == "second"
    assert sigs[0].signed_at == clock.now
    assert second.contract.status == ContractStatus.PARTIALLY_SIGNED


def test_cancelled_contract_cannot_be_signed(recorder, service, db, contract):
    service.cancel_contract(contract.id)
    with pytest.raises(ContractNotSignable):
        recorder.record(contract.id, SignerType.CLIENT, CLIENT)
    assert db.list_signatures(contract.id) == []


def test_fully_executed_contract_cannot_be_resigned(recorder, contract):
    recorder.record(contract.id, SignerType.CLIENT, CLIENT)
    recorder.record(contract.id, SignerType.SPEAKER, SPEAKER)
    with pytest.raises(ContractNotSignable):
        recorder.record(contract.id, SignerType.CLIENT, CLIENT)


def test_token_must_match_role(recorder, db, contract):
    with pytest.raises(InvalidToken):
        recorder.record(contract.id, SignerType.CLIENT, CLIENT, token=contract.speaker_signing_token)
    assert db.list_signatures(contract.id) == []

    result = recorder.record(contract.id, SignerType.CLIENT, CLIENT, token=contract.client_signing_token)
    assert result.contract.status == ContractStatus.PARTIALLY_SIGNED


def test_unknown_contract(recorder):
    with pytest.raises(ContractNotFound):
        recorder.record("does-not-exist", SignerType.CLIENT, CLIENT)


def test_admin_signature_is_recorded_without_executing(recorder, db, contract):
    result = recorder.record(contract.id, SignerType.ADMIN, SignerInfo(name="Ops", email="ops@speakabout.example"))
    assert result.contract.status == ContractStatus.DRAFT
    assert [s.signer_type for s in db.list_signatures(contract.id)] == [SignerType.ADMIN]


def test_concurrent_signatures_converge_to_fully_executed(recorder, db, contract):
    barrier = threading.Barrier(2)
    errors = []

    def sign(role, signer):
        barrier.wait()
        try:
            recorder.record(contract.id, role, signer)
        except Exception as e:  # pragma: no cover - surfaced by the assertion below
            errors.append(e)

    threads = [
        threading.Thread(target=sign, args=(SignerType.CLIENT, CLIENT)),
        threading.Thread(target=sign, args=(SignerType.SPEAKER, SPEAKER)),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    final = db.get_contract(contract.id)
    assert final.status == ContractStatus.FULLY_EXECUTED
    assert final.client_signed_at is not None and final.speaker_signed_at is not None
    assert len(db.list_signatures(contract.id)) == 2


def test_speaker_correction_keeps_latest_identity(recorder, db, contract):
    recorder.record(contract.id, SignerType.SPEAKER, SignerInfo(name="A. Lovelace", email="ada@speakers.example"))
    recorder.record(contract.id, SignerType.SPEAKER, SignerInfo(name="Ada Lovelace", email="ada@speakers.example"))
    sigs = db.list_signatures(contract.id)
    assert [s.signer_name for s in sigs] == ["Ada Lovelace"]
