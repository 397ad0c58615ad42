from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class Config:
    secret_key: str = "change-me"
    database_url: str = "sqlite:///menuplan.db"
    log_level: str = "INFO"
    metrics_backend: str = "noop"  # noop | log

    @classmethod
    def from_env(cls) -> Config:
        return cls(
            secret_key=os.getenv("SECRET_KEY", "change-me"),
            database_url=os.getenv("DATABASE_URL", "sqlite:///menuplan.db"),
            log_level=os.getenv("MENUPLAN_LOG_LEVEL", "INFO").upper(),
            metrics_backend=os.getenv("METRICS_BACKEND", "noop").strip().lower() or "noop",
        )

    def override(self, d: dict):
        for k, v in d.items():
            if hasattr(self, k):
                setattr(self, k, v)

    def to_flask_dict(self):
        return {
            "SECRET_KEY": self.secret_key,
            "SQLALCHEMY_DATABASE_URI": self.database_url,
            "MENUPLAN_LOG_LEVEL": self.log_level,
            "METRICS_BACKEND": self.metrics_backend,
            "SESSION_COOKIE_HTTPONLY": True,
            "SESSION_COOKIE_SAMESITE": "Lax",
        }
