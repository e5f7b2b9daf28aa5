"""
Bearer tokens and contract numbers.

A signing link carries nothing but its token, so tokens come from the `secrets`
module (OS CSPRNG) and are stored verbatim. `secrets` keeps no per-caller state,
which makes these helpers safe to call from concurrent requests.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from datetime import datetime

TOKEN_ALPHABET = string.ascii_letters + string.digits
MIN_TOKEN_LENGTH = 32
DEFAULT_TOKEN_LENGTH = 40


@dataclass(frozen=True)
class ContractTokens:
    access: str
    client_signing: str
    speaker_signing: str


def generate_secure_token(length: int = DEFAULT_TOKEN_LENGTH) -> str:
    if length < MIN_TOKEN_LENGTH:
        raise ValueError(f"Token length must be at least {MIN_TOKEN_LENGTH}; got {length}")
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def issue_contract_tokens(length: int = DEFAULT_TOKEN_LENGTH) -> ContractTokens:
    return ContractTokens(
        access=generate_secure_token(length),
        client_signing=generate_secure_token(length),
        speaker_signing=generate_secure_token(length),
    )


def generate_contract_number(now: datetime) -> str:
    """CTR-YYYYMMDD-NNNN. Human-facing, not secret."""
    return f"CTR-{now:%Y%m%d}-{secrets.randbelow(10000):04d}"
