"""
Mock integration clients.

These clients fake external services without calling any external API.
They are used when:
- no email delivery service is configured
- we want to test contract flows end-to-end without external dependencies

Important:
- Mock clients must follow the SAME interface as real HTTP clients.
- Mock clients consume data shaped according to src/integrations/contracts/interfaces.py

Switching to real:
When real endpoints and credentials are provided, src/api/main.py swaps in
the clients/real_http/* implementations instead.
"""
