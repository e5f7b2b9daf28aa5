"""
SQLAlchemy models for contracts, contract versions and contract signatures.
Used by postgres_real when USE_POSTGRES_CONTRACTS and DATABASE_URL are set.

Timestamps are stored as naive UTC.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, Optional
from uuid import uuid4
from sqlalchemy import JSON, Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class Contract(Base):
    __tablename__ = "contracts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    deal_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    contract_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    contract_type: Mapped[str] = mapped_column(String(32), default="client_speaker", nullable=False)
    modality: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="draft", nullable=False, index=True)

    # Financial terms
    fee_amount: Mapped[float] = mapped_column(Float, nullable=False)
    payment_terms: Mapped[str] = mapped_column(Text, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), default="USD", nullable=False)
    additional_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Event snapshot
    event_title: Mapped[str] = mapped_column(String(512), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_location: Mapped[str] = mapped_column(String(512), nullable=False)
    event_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Client snapshot
    client_name: Mapped[str] = mapped_column(String(256), nullable=False)
    client_email: Mapped[str] = mapped_column(String(256), nullable=False)
    client_company: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    client_phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Speaker snapshot
    speaker_name: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    speaker_email: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    speaker_fee: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Lifecycle
    generated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    client_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    speaker_signed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Bearer tokens
    access_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    client_signing_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    speaker_signing_token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)

    contract_metadata: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)

    versions: Mapped[list["ContractVersionRow"]] = relationship(
        "ContractVersionRow", back_populates="contract", order_by="ContractVersionRow.version_number"
    )
    signatures: Mapped[list["ContractSignature"]] = relationship("ContractSignature", back_populates="contract")


class ContractVersionRow(Base):
    __tablename__ = "contract_versions"
    __table_args__ = (UniqueConstraint("contract_id", "version_number", name="uq_contract_version"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    contract_id: Mapped[str] = mapped_column(String(36), ForeignKey("contracts.id"), nullable=False, index=True)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    terms: Mapped[str] = mapped_column(Text, nullable=False)
    changes_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="versions")


class ContractSignature(Base):
    __tablename__ = "contract_signatures"
    __table_args__ = (UniqueConstraint("contract_id", "signer_type", name="uq_contract_signer"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    contract_id: Mapped[str] = mapped_column(String(36), ForeignKey("contracts.id"), nullable=False, index=True)
    signer_type: Mapped[str] = mapped_column(String(16), nullable=False)
    signer_name: Mapped[str] = mapped_column(String(256), nullable=False)
    signer_email: Mapped[str] = mapped_column(String(256), nullable=False)
    signer_title: Mapped[Optional[str]] = mapped_column(String(256), nullable=True)
    signature_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    signature_method: Mapped[str] = mapped_column(String(16), default="digital_pad", nullable=False)
    signed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    contract: Mapped["Contract"] = relationship("Contract", back_populates="signatures")
