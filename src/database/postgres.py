"""
Lightweight in-memory contracts store for local development and tests.

Implements the same ContractRepository interface as src.database.postgres_real
so the API and the lifecycle service run without a real database. Each contract
has its own lock; a unit of work stages its writes on copies and publishes them
only when the `with` block exits cleanly. It is NOT intended for production use.
"""

from __future__ import annotations

import copy
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from src.contract_lifecycle.errors import ContractNotFound, DuplicateIdentifier
from src.contract_lifecycle.models import (
    ContractPatch,
    ContractRecord,
    ContractStatus,
    ContractVersion,
    Signature,
    SignerType,
    apply_patch,
)
from src.integrations.contracts.interfaces import ContractRepository, ContractUnitOfWork


class _InMemoryUnitOfWork(ContractUnitOfWork):
    def __init__(self, record: ContractRecord, signatures: Dict[SignerType, Signature], versions: List[ContractVersion]):
        self._record = record
        self._signatures = signatures
        self._versions = versions

    @property
    def contract(self) -> ContractRecord:
        return copy.deepcopy(self._record)

    def update(self, patch: ContractPatch, now: datetime) -> ContractRecord:
        self._record = apply_patch(self._record, patch, updated_at=now)
        return self.contract

    def signatures(self) -> List[Signature]:
        return [copy.deepcopy(s) for s in self._signatures.values()]

    def upsert_signature(self, signature: Signature) -> Signature:
        existing = self._signatures.get(signature.signer_type)
        stored = copy.deepcopy(signature)
        if existing is not None:
            stored.id = existing.id
        self._signatures[signature.signer_type] = stored
        return copy.deepcopy(stored)

    def append_version(self, terms: str, changes_summary: Optional[str], created_by: Optional[str], now: datetime) -> ContractVersion:
        version = ContractVersion(
            id=str(uuid.uuid4()),
            contract_id=self._record.id,
            version_number=len(self._versions) + 1,
            terms=terms,
            changes_summary=changes_summary,
            created_by=created_by,
            created_at=now,
        )
        self._versions.append(version)
        return copy.deepcopy(version)


class ContractsDB(ContractRepository):
    """
    In-memory stand-in for the Postgres-backed contracts store.
    """

    def __init__(self) -> None:
        self._contracts: Dict[str, ContractRecord] = {}
        self._versions: Dict[str, List[ContractVersion]] = {}
        self._signatures: Dict[str, Dict[SignerType, Signature]] = {}
        self._numbers: Dict[str, str] = {}
        self._tokens: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._contract_locks: Dict[str, threading.Lock] = {}

    # ------------------------------------------------------------------ #
    # Schema / lifecycle
    # ------------------------------------------------------------------ #
    def create_tables(self) -> None:
        """
        No-op for the in-memory implementation. Kept for compatibility
        with the startup hook in `src/api/main.py`.
        """
        return None

    # ------------------------------------------------------------------ #
    # Contracts
    # ------------------------------------------------------------------ #
    def create_contract(self, record: ContractRecord, initial_version: ContractVersion) -> ContractRecord:
        with self._lock:
            if record.contract_number in self._numbers:
                raise DuplicateIdentifier(record.contract_number)
            stored = copy.deepcopy(record)
            self._contracts[stored.id] = stored
            self._versions[stored.id] = [copy.deepcopy(initial_version)]
            self._signatures[stored.id] = {}
            self._numbers[stored.contract_number] = stored.id
            for token in (stored.access_token, stored.client_signing_token, stored.speaker_signing_token):
                self._tokens[token] = stored.id
            self._contract_locks[stored.id] = threading.Lock()
            return copy.deepcopy(stored)

    def contract_number_exists(self, contract_number: str) -> bool:
        with self._lock:
            return contract_number in self._numbers

    def get_contract(self, contract_id: str) -> Optional[ContractRecord]:
        with self._lock:
            record = self._contracts.get(str(contract_id))
            return copy.deepcopy(record) if record else None

    def get_contract_by_token(self, token: str) -> Optional[ContractRecord]:
        with self._lock:
            contract_id = self._tokens.get(token)
            if not contract_id:
                return None
            return copy.deepcopy(self._contracts[contract_id])

    def list_contracts(self, status: Optional[ContractStatus] = None) -> List[ContractRecord]:
        with self._lock:
            records = [r for r in self._contracts.values() if status is None or r.status == status]
            records.sort(key=lambda r: r.generated_at, reverse=True)
            return copy.deepcopy(records)

    def list_signatures(self, contract_id: str) -> List[Signature]:
        with self._lock:
            sigs = list(self._signatures.get(str(contract_id), {}).values())
            sigs.sort(key=lambda s: s.signed_at, reverse=True)
            return copy.deepcopy(sigs)

    def list_versions(self, contract_id: str) -> List[ContractVersion]:
        with self._lock:
            return copy.deepcopy(self._versions.get(str(contract_id), []))

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @contextmanager
    def transaction(self, contract_id: str) -> Iterator[ContractUnitOfWork]:
        contract_id = str(contract_id)
        with self._lock:
            contract_lock = self._contract_locks.get(contract_id)
        if contract_lock is None:
            raise ContractNotFound(contract_id)

        with contract_lock:
            with self._lock:
                uow = _InMemoryUnitOfWork(
                    copy.deepcopy(self._contracts[contract_id]),
                    copy.deepcopy(self._signatures[contract_id]),
                    copy.deepcopy(self._versions[contract_id]),
                )
            yield uow
            with self._lock:
                self._contracts[contract_id] = uow._record
                self._signatures[contract_id] = uow._signatures
                self._versions[contract_id] = uow._versions

    def ping(self) -> bool:
        return True
