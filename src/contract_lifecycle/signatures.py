"""
Signature recorder.

One active signature per (contract, signer type). A second submission for the
same role replaces the first in place. The upsert, the read of the signature
set and the status write happen inside a single repository transaction, so a
client and a speaker signing at the same moment both see each other's rows and
the contract ends at fully_executed.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

from src.contract_lifecycle.errors import ContractExpired, InvalidToken
from src.contract_lifecycle.models import (
    ContractStatus,
    Signature,
    SignatureMethod,
    SignatureOrigin,
    SignatureResult,
    SignerInfo,
    SignerType,
)
from src.contract_lifecycle.state_machine import ensure_signable, recompute_status
from src.integrations.contracts.interfaces import ContractRepository

logger = logging.getLogger(__name__)


class SignatureRecorder:
    def __init__(self, repository: ContractRepository, clock: Callable[[], datetime] = datetime.utcnow):
        self.repository = repository
        self.clock = clock

    def record(
        self,
        contract_id: str,
        signer_type: SignerType,
        signer: SignerInfo,
        signature_data: Optional[str] = None,
        *,
        method: SignatureMethod = SignatureMethod.DIGITAL_PAD,
        origin: Optional[SignatureOrigin] = None,
        token: Optional[str] = None,
        reject_expired: bool = False,
    ) -> SignatureResult:
        origin = origin or SignatureOrigin()
        now = self.clock()

        with self.repository.transaction(contract_id) as uow:
            contract = uow.contract
            if token is not None and not hmac.compare_digest(token, contract.token_for(signer_type)):
                logger.warning("Signing token does not match role %s on contract %s", signer_type.value, contract_id)
                raise InvalidToken()
            ensure_signable(contract)
            if reject_expired and contract.is_expired(now):
                raise ContractExpired(contract_id)

            existing = next((s for s in uow.signatures() if s.signer_type == signer_type), None)
            stored = uow.upsert_signature(
                Signature(
                    id=existing.id if existing else str(uuid.uuid4()),
                    contract_id=contract_id,
                    signer_type=signer_type,
                    signer_name=signer.name.strip(),
                    signer_email=signer.email.strip(),
                    signer_title=signer.title,
                    signature_data=signature_data,
                    method=method,
                    signed_at=now,
                    ip_address=origin.ip_address,
                    user_agent=origin.user_agent,
                    verified=True,
                )
            )

            patch = recompute_status(contract, uow.signatures(), now)
            updated = uow.update(patch, now)

        if existing:
            logger.info("Replaced %s signature on contract %s", signer_type.value, contract_id)
        else:
            logger.info("Recorded %s signature on contract %s", signer_type.value, contract_id)

        return SignatureResult(
            signature_id=stored.id,
            contract_fully_executed=updated.status == ContractStatus.FULLY_EXECUTED,
            contract=updated,
        )
