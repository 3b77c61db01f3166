"""
Process configuration read from environment variables.

Required:
- DATABASE_URL: SQLAlchemy connection string (Postgres in production)
- JWT_SECRET_KEY: secret used to verify bearer tokens

Optional:
- JWT_ALGORITHM (default HS256)
- ACCESS_TOKEN_EXPIRE_MINUTES (default 60)
- LOG_LEVEL (default INFO)
- DISCOVERY_DEFAULT_RADIUS_KM (default 10)
"""

import os


def _require_env(name: str) -> str:
    """Read a required environment variable or raise a clear error."""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable: {name}. "
            "Please set it in the ride_backend container .env."
        )
    return value


def _normalize_database_url(url: str) -> str:
    """
    Normalize DATABASE_URL to a SQLAlchemy-compatible URL.

    Notes:
    - Some platforms provide 'postgres://...' which SQLAlchemy expects as
      'postgresql://...'.
    """
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


DATABASE_URL = _normalize_database_url(_require_env("DATABASE_URL"))

JWT_SECRET_KEY = _require_env("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Discovery accepts a radius but does not filter on it yet.
DISCOVERY_DEFAULT_RADIUS_KM = float(os.getenv("DISCOVERY_DEFAULT_RADIUS_KM", "10"))
