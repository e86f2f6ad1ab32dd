"""Application settings and validation."""

import os
from pathlib import Path
from typing import Optional

BASE = Path(__file__).resolve().parent.parent
BACKENDS = ("sqlite", "mongo")


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    PASSWORD_HASH_ROUNDS: int
    DATABASE_BACKEND: str
    DATABASE_URL: str
    MONGO_URI: str
    MONGO_DB_NAME: str
    MONGO_TIMEOUT_MS: int
    ADMIN_USERNAME: Optional[str]
    ADMIN_PASSWORD: Optional[str]
    LOG_LEVEL: str
    ALLOW_DEV_CORS: bool

    def __init__(self, **overrides):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.PASSWORD_HASH_ROUNDS = int(os.getenv("PASSWORD_HASH_ROUNDS", "29000"))
        self.DATABASE_BACKEND = os.getenv("DATABASE_BACKEND", "sqlite").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'app.db'}")
        self.MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
        self.MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "task_manager")
        self.MONGO_TIMEOUT_MS = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
        self.ADMIN_USERNAME = os.getenv("ADMIN_USERNAME") or None
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD") or None
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        # explicit keyword overrides win over the environment (used by tests)
        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"unknown setting: {key}")
            setattr(self, key, value)
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.DATABASE_BACKEND not in BACKENDS:
            raise RuntimeError(f"DATABASE_BACKEND must be one of {', '.join(BACKENDS)}")
        for name in ("JWT_EXPIRE_HOURS", "PASSWORD_HASH_ROUNDS", "MONGO_TIMEOUT_MS"):
            if getattr(self, name) <= 0:
                raise RuntimeError(f"{name} must be a positive integer")
        if bool(self.ADMIN_USERNAME) != bool(self.ADMIN_PASSWORD):
            raise RuntimeError("ADMIN_USERNAME and ADMIN_PASSWORD must be set together")
