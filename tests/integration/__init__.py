"""Integration tests for components working together as a system.

Coverage:
    - SSE chat endpoint: event sequence, persistence, errors and locking
    - Conversation CRUD endpoints and per-user scoping
    - Session gate redirects and the auth form endpoints

Requests go through httpx ASGITransport to the real app and a temporary
SQLite database.
"""
