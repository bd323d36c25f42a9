"""Unit tests for individual components in isolation.

Coverage:
    - agent/: Provider configuration, fragment filtering and the response relay
    - store/: Conversation CRUD, ownership and fail-soft behavior
    - auth/: Gate decisions, auth service client and token extraction

Uses mocks for the Agno agent and httpx MockTransport for the auth service.
"""
