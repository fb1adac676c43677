"""
Travel Log API — Application Package
======================================

A JSON REST backend for recording trips and the places visited along them,
with a WebSocket feed of live entity counts.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │    Middleware & dependencies        │  ← auth, JSON bodies, request IDs
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← CRUD, query pipeline, stats
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
