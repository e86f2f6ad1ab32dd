"""Task Manager backend.

A small layered API: domain entities and rules live in `domain`,
persistence adapters in `repositories`, business logic in `usecases`,
and the FastAPI delivery layer in `main` and `auth`.
"""
