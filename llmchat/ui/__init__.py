"""NiceGUI interface - thin visualization layer for chat interactions.

Responsibilities:
    - Login and registration forms
    - Chat message display with streaming and tokens/s readout
    - Conversation sidebar: switch, create, rename, delete

Contains minimal business logic. Delegates all operations to the API.
"""
