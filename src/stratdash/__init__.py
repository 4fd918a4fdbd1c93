"""stratdash: business-intelligence dashboard backend.

The HTTP API behind the strategy dashboard: operator accounts,
password login, access/refresh tokens, and revocable sessions.
"""

__version__ = "0.1.0"
