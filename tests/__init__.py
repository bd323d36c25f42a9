"""Test package for LLM Chat.

Structure:
    - unit/: Relay, store, gate, auth client and config tests
    - integration/: HTTP tests against the FastAPI app with a SQLite store

The model and the auth service are replaced by in-memory fakes from
conftest.py, so no network access or API key is needed.
"""
