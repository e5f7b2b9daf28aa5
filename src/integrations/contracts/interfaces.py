from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from src.contract_lifecycle.models import (
    ContractPatch,
    ContractRecord,
    ContractStatus,
    ContractVersion,
    Signature,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class NotificationEvent(str, Enum):
    SIGNATURE_REQUESTED = "signature_requested"
    FULLY_EXECUTED = "fully_executed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Shared data models
# ---------------------------------------------------------------------------

@dataclass
class NotificationMessage:
    event: NotificationEvent
    contract_id: str
    contract_number: str
    recipient_email: str
    recipient_name: str
    subject: str
    html: str
    text: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class ContractUnitOfWork(ABC):
    """Reads and writes against one contract, serialized against other writers of it.

    Obtained from `ContractRepository.transaction(contract_id)`. Everything done
    through one unit of work commits together when the context exits cleanly
    and is discarded if it raises.
    """

    @property
    @abstractmethod
    def contract(self) -> ContractRecord:
        """The contract as of the latest write in this unit of work."""

    @abstractmethod
    def update(self, patch: ContractPatch, now: datetime) -> ContractRecord:
        """Apply a typed patch; fields left as None are untouched."""

    @abstractmethod
    def signatures(self) -> List[Signature]:
        """Current active signatures, at most one per signer type."""

    @abstractmethod
    def upsert_signature(self, signature: Signature) -> Signature:
        """Insert, or overwrite the active signature for the same signer type."""

    @abstractmethod
    def append_version(
        self,
        terms: str,
        changes_summary: Optional[str],
        created_by: Optional[str],
        now: datetime,
    ) -> ContractVersion:
        """Append the next version number."""


class ContractRepository(ABC):
    """Storage for contracts, their versions and signatures."""

    @abstractmethod
    def create_contract(self, record: ContractRecord, initial_version: ContractVersion) -> ContractRecord:
        """Persist a new contract with its first version. Raises DuplicateIdentifier on a number clash."""

    @abstractmethod
    def contract_number_exists(self, contract_number: str) -> bool:
        """Return True if a contract already uses this number."""

    @abstractmethod
    def get_contract(self, contract_id: str) -> Optional[ContractRecord]:
        """Fetch a contract by internal id."""

    @abstractmethod
    def get_contract_by_token(self, token: str) -> Optional[ContractRecord]:
        """Fetch the contract whose access, client or speaker token equals `token`."""

    @abstractmethod
    def list_contracts(self, status: Optional[ContractStatus] = None) -> List[ContractRecord]:
        """Newest first."""

    @abstractmethod
    def list_signatures(self, contract_id: str) -> List[Signature]:
        """Active signatures for a contract, most recent first."""

    @abstractmethod
    def list_versions(self, contract_id: str) -> List[ContractVersion]:
        """Versions for a contract, oldest first."""

    @abstractmethod
    def transaction(self, contract_id: str) -> AbstractContextManager:
        """Context manager yielding a ContractUnitOfWork. Raises ContractNotFound."""

    def ping(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

class NotificationDispatcher(ABC):
    """Delivers rendered contract emails. Retries and provider setup live behind this."""

    @abstractmethod
    def dispatch(self, message: NotificationMessage) -> None:
        """Hand one message over for delivery."""
