from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_opt_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_tuple(name: str) -> tuple[str, ...] | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    items = tuple(x.strip() for x in raw.split(",") if x.strip())
    return items or None


@dataclass(frozen=True)
class Settings:
    # Core
    db_path: str = os.getenv("RCD_DB_PATH", "rcd.db")
    docker_port: int = _env_int("RCD_DOCKER_PORT", 2375)
    docker_timeout_s: int = _env_int("RCD_DOCKER_TIMEOUT_S", 60)
    health_timeout_s: int = _env_int("RCD_HEALTH_TIMEOUT_S", 5)

    # Deployment defaults (overridable per deploy through DeployOptions)
    rolling_deploy_check_interval: int = _env_int("RCD_ROLLING_DEPLOY_CHECK_INTERVAL", 5)
    restart_policy_name: str | None = os.getenv("RCD_RESTART_POLICY_NAME")
    restart_policy_max_retry_count: int | None = _env_opt_int("RCD_RESTART_POLICY_MAX_RETRY_COUNT")
    custom_dns: tuple[str, ...] | None = _env_tuple("RCD_CUSTOM_DNS")
    container_hostname: str | None = os.getenv("RCD_CONTAINER_HOSTNAME")
    name: str | None = os.getenv("RCD_NAME")


settings = Settings()


@dataclass(frozen=True)
class DeployOptions:
    """Named options consumed by one deployment.

    Everything is optional; ``None`` means "use the built-in default" and is
    resolved at the point of use (restart policy, hostname).
    """

    rolling_deploy_check_interval: int = 5
    restart_policy_name: str | None = None
    restart_policy_max_retry_count: int | None = None
    custom_dns: tuple[str, ...] | None = None
    container_hostname: str | None = None
    name: str | None = None

    @classmethod
    def from_settings(cls, s: Settings | None = None, **overrides) -> "DeployOptions":
        s = s or settings
        values = {
            "rolling_deploy_check_interval": s.rolling_deploy_check_interval,
            "restart_policy_name": s.restart_policy_name,
            "restart_policy_max_retry_count": s.restart_policy_max_retry_count,
            "custom_dns": s.custom_dns,
            "container_hostname": s.container_hostname,
            "name": s.name,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
