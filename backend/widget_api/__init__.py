"""
Widget API Backend: Application Package
==========================================

Multi-tenant widget CRUD service. Callers authenticate with bearer tokens
issued by an external identity provider; every widget belongs to the token's
subject and is invisible to everyone else.

Layers:

    ┌─────────────────────────────────────┐
    │   Routes + Auth dependency (HTTP)   │  ← status codes, headers, principal
    ├─────────────────────────────────────┤
    │       Services (Business Logic)     │  ← ownership, versions, paging rules
    ├─────────────────────────────────────┤
    │     Repositories (SQL statements)   │  ← owner-scoped queries, CAS update
    ├─────────────────────────────────────┤
    │   Models & Schemas / Database       │  ← SQLAlchemy ORM, Pydantic, sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
