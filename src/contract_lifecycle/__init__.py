"""
Contract lifecycle core.

Validation, rendering, token issuance, status transitions and signature
recording for speaker engagement contracts. Storage and email delivery are
reached only through the interfaces in src/integrations/contracts/interfaces.py.
"""
