"""
Real Postgres-backed contracts store for production when USE_POSTGRES_CONTRACTS and DATABASE_URL are set.
Implements the same ContractRepository interface as src.database.postgres (in-memory stub).

Mutations run inside `transaction(contract_id)`, which locks the contract row
with SELECT ... FOR UPDATE for the lifetime of the session.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional
from uuid import uuid4

from sqlalchemy import create_engine, func, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from src.contract_lifecycle.errors import ContractNotFound, DuplicateIdentifier, StorageUnavailable
from src.contract_lifecycle.models import (
    ClientSnapshot,
    ContractPatch,
    ContractRecord,
    ContractStatus,
    ContractVersion,
    EventSnapshot,
    Modality,
    Signature,
    SignatureMethod,
    SignerType,
    SpeakerSnapshot,
)
from src.database.models import Base, Contract, ContractSignature, ContractVersionRow
from src.integrations.contracts.interfaces import ContractRepository, ContractUnitOfWork


def _normalize_connection_string(s: str) -> str:
    """Strip common mistakes: 'psql \'...\'', extra quotes, whitespace."""
    s = s.strip()
    if re.match(r"^psql\s+", s, re.IGNORECASE):
        s = re.sub(r"^psql\s+", "", s, flags=re.IGNORECASE).strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        s = s[1:-1].strip()
    return s


# ---------------------------------------------------------------------- #
# Row <-> record mapping
# ---------------------------------------------------------------------- #
def _to_record(row: Contract) -> ContractRecord:
    return ContractRecord(
        id=row.id,
        contract_number=row.contract_number,
        title=row.title,
        modality=Modality(row.modality),
        status=ContractStatus(row.status),
        fee_amount=row.fee_amount,
        payment_terms=row.payment_terms,
        currency=row.currency,
        event=EventSnapshot(
            title=row.event_title,
            date=row.event_date,
            location=row.event_location,
            type=row.event_type,
        ),
        client=ClientSnapshot(
            name=row.client_name,
            email=row.client_email,
            company=row.client_company,
            phone=row.client_phone,
        ),
        speaker=SpeakerSnapshot(name=row.speaker_name, email=row.speaker_email, fee=row.speaker_fee),
        generated_at=row.generated_at,
        expires_at=row.expires_at,
        access_token=row.access_token,
        client_signing_token=row.client_signing_token,
        speaker_signing_token=row.speaker_signing_token,
        deal_id=row.deal_id,
        contract_type=row.contract_type,
        additional_terms=row.additional_terms,
        sent_at=row.sent_at,
        client_signed_at=row.client_signed_at,
        speaker_signed_at=row.speaker_signed_at,
        completed_at=row.completed_at,
        updated_at=row.updated_at,
        metadata=dict(row.contract_metadata or {}),
    )


def _to_row(record: ContractRecord) -> Contract:
    return Contract(
        id=record.id,
        deal_id=record.deal_id,
        contract_number=record.contract_number,
        title=record.title,
        contract_type=record.contract_type,
        modality=record.modality.value,
        status=record.status.value,
        fee_amount=record.fee_amount,
        payment_terms=record.payment_terms,
        currency=record.currency,
        additional_terms=record.additional_terms,
        event_title=record.event.title,
        event_date=record.event.date,
        event_location=record.event.location,
        event_type=record.event.type,
        client_name=record.client.name,
        client_email=record.client.email,
        client_company=record.client.company,
        client_phone=record.client.phone,
        speaker_name=record.speaker.name,
        speaker_email=record.speaker.email,
        speaker_fee=record.speaker.fee,
        generated_at=record.generated_at,
        sent_at=record.sent_at,
        client_signed_at=record.client_signed_at,
        speaker_signed_at=record.speaker_signed_at,
        completed_at=record.completed_at,
        expires_at=record.expires_at,
        updated_at=record.updated_at,
        access_token=record.access_token,
        client_signing_token=record.client_signing_token,
        speaker_signing_token=record.speaker_signing_token,
        contract_metadata=dict(record.metadata),
    )


def _to_signature(row: ContractSignature) -> Signature:
    return Signature(
        id=row.id,
        contract_id=row.contract_id,
        signer_type=SignerType(row.signer_type),
        signer_name=row.signer_name,
        signer_email=row.signer_email,
        signed_at=row.signed_at,
        signer_title=row.signer_title,
        signature_data=row.signature_data,
        method=SignatureMethod(row.signature_method),
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        verified=row.verified,
    )


def _to_version(row: ContractVersionRow) -> ContractVersion:
    return ContractVersion(
        id=row.id,
        contract_id=row.contract_id,
        version_number=row.version_number,
        terms=row.terms,
        changes_summary=row.changes_summary,
        created_by=row.created_by,
        created_at=row.created_at,
    )


def _apply_patch(row: Contract, patch: ContractPatch, now: datetime) -> None:
    for name, value in patch.items():
        if name == "status":
            row.status = value.value
        elif name == "event":
            row.event_title = value.title
            row.event_date = value.date
            row.event_location = value.location
            row.event_type = value.type
        elif name == "speaker":
            row.speaker_name = value.name
            row.speaker_email = value.email
            row.speaker_fee = value.fee
        elif name == "metadata":
            row.contract_metadata = dict(value)
        else:
            setattr(row, name, value)
    row.updated_at = now


class _SqlUnitOfWork(ContractUnitOfWork):
    """Unit of work bound to one session and one locked contract row."""

    def __init__(self, session: Session, row: Contract):
        self._s = session
        self._row = row

    @property
    def contract(self) -> ContractRecord:
        return _to_record(self._row)

    def update(self, patch: ContractPatch, now: datetime) -> ContractRecord:
        _apply_patch(self._row, patch, now)
        self._s.flush()
        return _to_record(self._row)

    def signatures(self) -> List[Signature]:
        stmt = select(ContractSignature).where(ContractSignature.contract_id == self._row.id)
        return [_to_signature(r) for r in self._s.execute(stmt).scalars().all()]

    def upsert_signature(self, signature: Signature) -> Signature:
        stmt = select(ContractSignature).where(
            ContractSignature.contract_id == self._row.id,
            ContractSignature.signer_type == signature.signer_type.value,
        )
        row = self._s.execute(stmt).scalar_one_or_none()
        if row is None:
            row = ContractSignature(id=signature.id, contract_id=self._row.id, signer_type=signature.signer_type.value)
            self._s.add(row)
        row.signer_name = signature.signer_name
        row.signer_email = signature.signer_email
        row.signer_title = signature.signer_title
        row.signature_data = signature.signature_data
        row.signature_method = signature.method.value
        row.signed_at = signature.signed_at
        row.ip_address = signature.ip_address
        row.user_agent = signature.user_agent
        row.verified = signature.verified
        self._s.flush()
        return _to_signature(row)

    def append_version(self, terms: str, changes_summary: Optional[str], created_by: Optional[str], now: datetime) -> ContractVersion:
        current = self._s.execute(
            select(func.max(ContractVersionRow.version_number)).where(ContractVersionRow.contract_id == self._row.id)
        ).scalar()
        v = ContractVersionRow(
            id=str(uuid4()),
            contract_id=self._row.id,
            version_number=(current or 0) + 1,
            terms=terms,
            changes_summary=changes_summary,
            created_by=created_by,
            created_at=now,
        )
        self._s.add(v)
        self._s.flush()
        return _to_version(v)


class ContractsDB(ContractRepository):
    """
    Postgres data access using SQLAlchemy. Use when DATABASE_URL is set and
    USE_POSTGRES_CONTRACTS=true.
    """

    def __init__(self, connection_string: str) -> None:
        connection_string = _normalize_connection_string(connection_string)
        if connection_string.startswith("sqlite"):
            # Single shared connection so in-memory databases survive across sessions.
            self.engine = create_engine(
                connection_string,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(connection_string, pool_pre_ping=True, pool_size=5, max_overflow=10)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine, expire_on_commit=False)

    def create_tables(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except DBAPIError as e:
            raise StorageUnavailable(str(e)) from e

    @contextmanager
    def _session(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except IntegrityError:
            s.rollback()
            raise
        except DBAPIError as e:
            s.rollback()
            raise StorageUnavailable(str(e)) from e
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    # ------------------------------------------------------------------ #
    # Contracts
    # ------------------------------------------------------------------ #
    def create_contract(self, record: ContractRecord, initial_version: ContractVersion) -> ContractRecord:
        try:
            with self._session() as s:
                row = _to_row(record)
                s.add(row)
                s.flush()
                s.add(
                    ContractVersionRow(
                        id=initial_version.id,
                        contract_id=row.id,
                        version_number=initial_version.version_number,
                        terms=initial_version.terms,
                        changes_summary=initial_version.changes_summary,
                        created_by=initial_version.created_by,
                        created_at=initial_version.created_at or record.generated_at,
                    )
                )
                s.flush()
                return _to_record(row)
        except IntegrityError as e:
            raise DuplicateIdentifier(record.contract_number) from e

    def contract_number_exists(self, contract_number: str) -> bool:
        with self._session() as s:
            stmt = select(Contract.id).where(Contract.contract_number == contract_number)
            return s.execute(stmt).first() is not None

    def get_contract(self, contract_id: str) -> Optional[ContractRecord]:
        with self._session() as s:
            row = s.get(Contract, str(contract_id))
            return _to_record(row) if row else None

    def get_contract_by_token(self, token: str) -> Optional[ContractRecord]:
        with self._session() as s:
            stmt = select(Contract).where(
                (Contract.access_token == token)
                | (Contract.client_signing_token == token)
                | (Contract.speaker_signing_token == token)
            )
            row = s.execute(stmt).scalar_one_or_none()
            return _to_record(row) if row else None

    def list_contracts(self, status: Optional[ContractStatus] = None) -> List[ContractRecord]:
        with self._session() as s:
            stmt = select(Contract).order_by(Contract.generated_at.desc())
            if status is not None:
                stmt = stmt.where(Contract.status == status.value)
            return [_to_record(r) for r in s.execute(stmt).scalars().all()]

    def list_signatures(self, contract_id: str) -> List[Signature]:
        with self._session() as s:
            stmt = (
                select(ContractSignature)
                .where(ContractSignature.contract_id == str(contract_id))
                .order_by(ContractSignature.signed_at.desc())
            )
            return [_to_signature(r) for r in s.execute(stmt).scalars().all()]

    def list_versions(self, contract_id: str) -> List[ContractVersion]:
        with self._session() as s:
            stmt = (
                select(ContractVersionRow)
                .where(ContractVersionRow.contract_id == str(contract_id))
                .order_by(ContractVersionRow.version_number)
            )
            return [_to_version(r) for r in s.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @contextmanager
    def transaction(self, contract_id: str) -> Iterator[ContractUnitOfWork]:
        with self._session() as s:
            stmt = select(Contract).where(Contract.id == str(contract_id)).with_for_update()
            row = s.execute(stmt).scalar_one_or_none()
            if row is None:
                raise ContractNotFound(contract_id)
            yield _SqlUnitOfWork(s, row)

    def ping(self) -> bool:
        with self._session() as s:
            s.execute(text("SELECT 1"))
        return True
