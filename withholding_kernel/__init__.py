"""
Withholding Kernel

Shared infrastructure for the withholding evaluators:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- SQLAlchemy declarative base, engine and session helpers
- Financial-grade Decimal column types and rounding
"""

__version__ = "0.1.0"
