"""
RoleGate - Access Configuration

Builds the explicit configuration handed to the authorization core at
startup. YAML supplies the defaults, the environment supplies secrets and
deployment overrides.

Environment:
- JWT_SECRET                 (required)
- ROLEGATE_DB_PATH           (optional, overrides db.yaml)
- ROLEGATE_MATCH_HTTP_METHOD (optional, "true"/"false")
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from config.system_loader import get_database_config, get_system_config


class ConfigError(Exception):
    """Raised when the access configuration is incomplete or invalid."""
    pass


@dataclass(frozen=True)
class AccessConfig:
    jwt_secret: str
    database_path: str
    jwt_algorithm: str = "HS256"
    access_token_minutes: int = 15
    catalog_refresh_seconds: float = 60.0
    match_http_method: bool = False
    admin_roles: Tuple[str, ...] = ("Super Admin",)

    def __post_init__(self):
        if not self.jwt_secret:
            raise ConfigError("jwt_secret must be a non-empty string.")
        if not self.database_path:
            raise ConfigError("database_path must be set.")
        if self.catalog_refresh_seconds < 0:
            raise ConfigError("catalog_refresh_seconds cannot be negative.")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_access_config(overrides: Optional[dict] = None) -> AccessConfig:
    """
    Build AccessConfig from settings.yaml, db.yaml and the environment.
    Keys in `overrides` win over everything else.
    """

    load_dotenv()

    system_cfg = get_system_config()
    db_cfg = get_database_config().get("access_store", {})

    auth_cfg = system_cfg.get("auth", {})
    authz_cfg = system_cfg.get("authorization", {})

    db_path = os.getenv("ROLEGATE_DB_PATH") or db_cfg.get("path", "")

    values = {
        "jwt_secret": os.getenv("JWT_SECRET", ""),
        "database_path": os.path.abspath(db_path) if db_path else "",
        "jwt_algorithm": auth_cfg.get("jwt_algorithm", "HS256"),
        "access_token_minutes": int(auth_cfg.get("access_token_minutes", 15)),
        "catalog_refresh_seconds": float(authz_cfg.get("catalog_refresh_seconds", 60)),
        "match_http_method": _env_flag(
            "ROLEGATE_MATCH_HTTP_METHOD",
            bool(authz_cfg.get("match_http_method", False))
        ),
        "admin_roles": tuple(authz_cfg.get("admin_roles") or ("Super Admin",)),
    }

    if overrides:
        values.update(overrides)

    if not values["jwt_secret"]:
        raise ConfigError("JWT_SECRET must be set in environment variables.")

    return AccessConfig(**values)
