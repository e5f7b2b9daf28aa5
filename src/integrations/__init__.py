"""
Integrations layer.
This package contains all code used to communicate with external systems such as:
- Contract storage (in-memory stub or Postgres, see src/database)
- The transactional email service that delivers signing requests

Key rule:
- The contract lifecycle core MUST NOT call external APIs directly.
- It talks to the interfaces in src/integrations/contracts/interfaces.py.
- We use MOCK clients during development and swap to REAL_HTTP clients when APIs are available.

Switching implementations:
- The selection of mock vs real clients happens in ONE place (src/api/main.py).
"""

from .contracts.interfaces import (
    ContractRepository,
    ContractUnitOfWork,
    NotificationDispatcher,
    NotificationEvent,
    NotificationMessage,
)

__all__ = [
    "ContractRepository",
    "ContractUnitOfWork",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationMessage",
]
