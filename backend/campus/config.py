"""Application settings and validation."""

import os
from pathlib import Path

DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "campus.db"
DEFAULT_EMAIL_DOMAIN_ROLES = (
    "st.habib.edu.pk=student,"
    "sse.habib.edu.pk=faculty,"
    "ahss.habib.edu.pk=faculty,"
    "habib.edu.pk=staff"
)
VALID_ROLES = ("student", "faculty", "staff")


def parse_domain_roles(raw: str) -> dict:
    """Parse a `domain=role,domain=role` string into a mapping.

    Entries with an unknown role or without a `=` are rejected so a typo in
    deployment config fails loudly at startup.
    """
    mapping = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        if "=" not in chunk:
            raise RuntimeError(f"invalid EMAIL_DOMAIN_ROLES entry: {chunk!r}")
        domain, role = (part.strip().lower() for part in chunk.split("=", 1))
        if role not in VALID_ROLES:
            raise RuntimeError(f"unknown role {role!r} for domain {domain!r}")
        mapping[domain] = role
    return mapping


class Settings:
    ENV: str
    DATABASE_URL: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    LOGIN_RATE_LIMIT_PER_MIN: int
    LOGIN_RATE_LIMIT_WINDOW_SECONDS: int
    EMAIL_DOMAIN_ROLES: dict

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", str(24 * 7)))
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.LOGIN_RATE_LIMIT_PER_MIN = int(os.getenv("LOGIN_RATE_LIMIT_PER_MIN", "20"))
        self.LOGIN_RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.EMAIL_DOMAIN_ROLES = parse_domain_roles(os.getenv("EMAIL_DOMAIN_ROLES", DEFAULT_EMAIL_DOMAIN_ROLES))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if not self.EMAIL_DOMAIN_ROLES:
            raise RuntimeError("EMAIL_DOMAIN_ROLES must list at least one e-mail domain")


settings = Settings()
