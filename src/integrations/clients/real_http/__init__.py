"""
Real HTTP integration clients.

These clients communicate with real external systems via HTTP, e.g.:
- the transactional email service that delivers signing requests

Important:
- Must implement the same interfaces as the mock clients
- Must consume data shaped according to src/integrations/contracts/interfaces.py

Switching:
The selection of mock vs real clients happens in src/api/main.py only.
"""
