"""LLM Chat - authenticated chat with a hosted LLM and persisted history.

Combines FastAPI for HTTP streaming, Agno for model access, NiceGUI for the
interface, SQLAlchemy for persistence, and Pydantic for data validation.

Components:
    - api: HTTP endpoints, SSE streaming and auth forms
    - agent: generation provider and the streaming response relay
    - store: conversation and message persistence
    - auth: identity lookup and the session gate
    - ui: Web interface for chat interactions
    - models: Records and request/response schemas
"""

__version__ = "0.1.0"
