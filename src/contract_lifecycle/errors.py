"""Error types raised by the contract lifecycle core.

The API layer maps each of these to an HTTP status; see
`src/api/contracts_router.py`.
"""

from __future__ import annotations

from typing import List, Optional


class ContractError(Exception):
    """Base class for every contract lifecycle failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ContractValidationError(ContractError):
    """Creation (or amendment) input failed validation. Nothing was allocated."""

    def __init__(self, errors: List[str], message: str = "Contract validation failed") -> None:
        super().__init__(message)
        self.errors = list(errors)

    def __str__(self) -> str:
        return f"{self.message}: {', '.join(self.errors)}"


class DuplicateIdentifier(ContractError):
    def __init__(self, contract_number: str) -> None:
        super().__init__(f"Contract number {contract_number} is already in use")
        self.contract_number = contract_number


class CreationFailed(ContractError):
    pass


class ContractNotFound(ContractError):
    def __init__(self, contract_id: Optional[str] = None) -> None:
        super().__init__("Contract not found")
        self.contract_id = contract_id


class ContractNotSignable(ContractError):
    def __init__(self, contract_id: str, status: str) -> None:
        super().__init__(f"Contract {contract_id} cannot be signed in status '{status}'")
        self.contract_id = contract_id
        self.status = status


class ContractExpired(ContractError):
    def __init__(self, contract_id: str) -> None:
        super().__init__("Contract has expired")
        self.contract_id = contract_id


class InvalidToken(ContractError):
    # Deliberately carries no detail about which part of the lookup failed.
    def __init__(self) -> None:
        super().__init__("Contract not found or invalid token")


class InvalidTransition(ContractError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move contract from '{current}' to '{target}'")
        self.current = current
        self.target = target


class VersionLocked(ContractError):
    def __init__(self, contract_id: str) -> None:
        super().__init__(f"Contract {contract_id} already has signatures; its terms are locked")
        self.contract_id = contract_id


class MissingField(ContractError):
    def __init__(self, field: str, section_id: Optional[str] = None) -> None:
        where = f" in section '{section_id}'" if section_id else ""
        super().__init__(f"No value for placeholder '{field}'{where}")
        self.field = field
        self.section_id = section_id


class StorageUnavailable(ContractError):
    pass
