"""
Billing Kernel

Shared infrastructure for the billing back-office engine:
- Injectable clock (no inline wall-clock reads)
- Structured JSON logging with run-scoped context
- Typed exception hierarchy with machine-readable codes
- SQLAlchemy declarative base and session helpers
"""

__version__ = "0.1.0"
