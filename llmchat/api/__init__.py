"""FastAPI endpoints for the chat application.

Endpoints:
    - GET /health: Service health status
    - GET /: Landing redirect to /chat or /login
    - POST /api/chat/stream: Server-Sent Events chat streaming
    - /api/conversations: Conversation and message CRUD
    - POST /auth/login, POST /auth/register, GET /auth/logout: Session cookie handling
"""

from llmchat.api.app import app, create_app

__all__ = ["app", "create_app"]
