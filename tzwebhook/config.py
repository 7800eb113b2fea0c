from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import FrozenSet, List, Optional

from pydantic import ValidationError

from tzwebhook.core.errors import ConfigError
from tzwebhook.core.models import MountDescriptor

DEFAULT_TIMEZONE = "Asia/Shanghai"
DEFAULT_ZONEINFO_DIR = "/usr/share/zoneinfo"
DEFAULT_VOLUME_NAME = "local-tz"
DEFAULT_MOUNT_PATH = "/etc/localtime"
DEFAULT_IGNORED_NAMESPACES = ("kube-system", "kube-public")


def split_csv(raw: str) -> List[str]:
    return [x.strip() for x in (raw or "").split(",") if x.strip()]


def env_str(name: str, default: str) -> str:
    return (os.getenv(name, "") or "").strip() or default


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class WebhookConfig:
    """Immutable startup configuration shared (read-only) by every admission decision."""

    mount: MountDescriptor
    ignored_namespaces: FrozenSet[str] = field(default_factory=lambda: frozenset(DEFAULT_IGNORED_NAMESPACES))


@dataclass(frozen=True)
class ServerConfig:
    port: int = 443
    cert_file: str = "/etc/webhook/certs/cert.pem"
    key_file: str = "/etc/webhook/certs/key.pem"
    log_level: str = "info"


def timezone_host_path(timezone: str, zoneinfo_dir: str = DEFAULT_ZONEINFO_DIR) -> str:
    """
    Resolve an `Area/City` timezone name to its zoneinfo file on the node.

    Names must be relative and must not climb out of the zoneinfo directory.
    """
    tz = (timezone or "").strip()
    if not tz:
        raise ConfigError("timezone must be non-empty")
    if tz.startswith("/") or ".." in tz.split("/"):
        raise ConfigError(f"invalid timezone name: {tz!r}")
    return f"{(zoneinfo_dir or DEFAULT_ZONEINFO_DIR).rstrip('/')}/{tz}"


def build_webhook_config(
    *,
    timezone: str = DEFAULT_TIMEZONE,
    ignored_namespaces: Optional[List[str]] = None,
    zoneinfo_dir: str = DEFAULT_ZONEINFO_DIR,
    volume_name: str = DEFAULT_VOLUME_NAME,
    mount_path: str = DEFAULT_MOUNT_PATH,
) -> WebhookConfig:
    host_path = timezone_host_path(timezone, zoneinfo_dir)
    try:
        mount = MountDescriptor(name=volume_name, host_path=host_path, mount_path=mount_path)
    except ValidationError as e:
        raise ConfigError(f"invalid mount descriptor: {e}") from e
    ns = DEFAULT_IGNORED_NAMESPACES if ignored_namespaces is None else ignored_namespaces
    return WebhookConfig(mount=mount, ignored_namespaces=frozenset(ns))


@lru_cache(maxsize=1)
def load_webhook_config() -> WebhookConfig:
    """
    Load the admission configuration from environment variables.

    Recommended vars:
    - TIMEZONE=Asia/Shanghai
    - IGNORE_NAMESPACES=kube-system,kube-public
    - ZONEINFO_DIR=/usr/share/zoneinfo
    - TZ_VOLUME_NAME=local-tz
    - TZ_MOUNT_PATH=/etc/localtime
    """
    raw_ns = os.getenv("IGNORE_NAMESPACES")
    return build_webhook_config(
        timezone=env_str("TIMEZONE", DEFAULT_TIMEZONE),
        ignored_namespaces=split_csv(raw_ns) if raw_ns is not None else None,
        zoneinfo_dir=env_str("ZONEINFO_DIR", DEFAULT_ZONEINFO_DIR),
        volume_name=env_str("TZ_VOLUME_NAME", DEFAULT_VOLUME_NAME),
        mount_path=env_str("TZ_MOUNT_PATH", DEFAULT_MOUNT_PATH),
    )


def load_server_config() -> ServerConfig:
    defaults = ServerConfig()
    return ServerConfig(
        port=env_int("PORT", defaults.port),
        cert_file=env_str("TLS_CERT_FILE", defaults.cert_file),
        key_file=env_str("TLS_PRIVATE_KEY_FILE", defaults.key_file),
        log_level=env_str("LOG_LEVEL", defaults.log_level).lower(),
    )


def check_host_path(config: WebhookConfig) -> None:
    """Fail fast when the node does not ship the requested timezone file."""
    if not os.path.exists(config.mount.host_path):
        raise ConfigError(f"failed to find timezone file: {config.mount.host_path}")
