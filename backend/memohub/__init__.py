"""
MemoHub Backend — Application Package Initializer
==================================================

What: Marks the `memohub` directory as a Python package.
Who:  Imported by uvicorn (`memohub.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │   Routes (API Layer, /api/*)        │  ← HTTP, session resolution
    ├─────────────────────────────────────┤
    │   Services (Business Rules)         │  ← permissions, invitations, CRUD
    ├─────────────────────────────────────┤
    │   Models & Schemas (Data)           │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database (Persistence)            │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The permission evaluator (services/permissions.py) sits beside the
    services as a pure module with no I/O, so every role rule can be tested
    without a database.
"""

__version__ = "1.0.0"
