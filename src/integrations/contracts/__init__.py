"""
Contracts (interfaces and data shapes).

This folder defines the seams between the contract lifecycle core and the
systems around it:
- the repository and unit of work the core persists through
- the notification message and dispatcher used for contract emails

Both mock and real implementations should use these interfaces.
"""
