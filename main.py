#!/usr/bin/env python3
"""
Timezone injector - mutating admission webhook.
Mounts the node's zoneinfo file for the configured timezone into every pod container.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional, Tuple

from tzwebhook.config import (
    DEFAULT_IGNORED_NAMESPACES,
    DEFAULT_MOUNT_PATH,
    DEFAULT_TIMEZONE,
    DEFAULT_VOLUME_NAME,
    DEFAULT_ZONEINFO_DIR,
    ServerConfig,
    WebhookConfig,
    build_webhook_config,
    check_host_path,
    env_str,
    load_server_config,
    split_csv,
)
from tzwebhook.core.errors import ConfigError

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)
logger = logging.getLogger("tzwebhook")


def build_parser(env_server: ServerConfig) -> argparse.ArgumentParser:
    """Flags override the environment; the environment overrides built-in defaults."""
    parser = argparse.ArgumentParser(
        description="Mutating admission webhook that mounts a host timezone file into pod containers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve with the default certificate paths, mounting Asia/Shanghai
  python main.py

  # Mount Europe/Berlin and skip an extra namespace
  python main.py --tz Europe/Berlin --ignore-namespaces kube-system,kube-public,monitoring

  # Local development over plain HTTP
  python main.py --port 8080 --tls-cert-file "" --tls-private-key-file ""
        """,
    )
    parser.add_argument("--host", default="0.0.0.0", help="Webhook server bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=env_server.port, help="Webhook server port (default: 443)")
    parser.add_argument(
        "--tls-cert-file",
        default=env_server.cert_file,
        help="File containing the default x509 Certificate for HTTPS. (CA cert, if any, concatenated after server cert).",
    )
    parser.add_argument(
        "--tls-private-key-file",
        default=env_server.key_file,
        help="File containing the default x509 private key matching --tls-cert-file.",
    )
    parser.add_argument(
        "--ignore-namespaces",
        default=os.getenv("IGNORE_NAMESPACES", ",".join(DEFAULT_IGNORED_NAMESPACES)),
        help="Comma-separated namespaces to ignore (default: kube-system,kube-public)",
    )
    parser.add_argument(
        "--tz",
        default=env_str("TIMEZONE", DEFAULT_TIMEZONE),
        help="Which timezone file to mount into (default: Asia/Shanghai)",
    )
    parser.add_argument(
        "--zoneinfo-dir",
        default=env_str("ZONEINFO_DIR", DEFAULT_ZONEINFO_DIR),
        help="Directory holding zoneinfo files on the node (default: /usr/share/zoneinfo)",
    )
    parser.add_argument(
        "--volume-name",
        default=env_str("TZ_VOLUME_NAME", DEFAULT_VOLUME_NAME),
        help="Name of the injected volume and mount (default: local-tz)",
    )
    parser.add_argument(
        "--mount-path",
        default=env_str("TZ_MOUNT_PATH", DEFAULT_MOUNT_PATH),
        help="Container path the timezone file is mounted at (default: /etc/localtime)",
    )
    parser.add_argument(
        "--log-level",
        default=env_server.log_level,
        choices=["critical", "error", "warning", "info", "debug"],
        help="Log level (default: info)",
    )
    return parser


def configs_from_args(args: argparse.Namespace) -> Tuple[WebhookConfig, ServerConfig]:
    webhook_config = build_webhook_config(
        timezone=args.tz,
        ignored_namespaces=split_csv(args.ignore_namespaces),
        zoneinfo_dir=args.zoneinfo_dir,
        volume_name=args.volume_name,
        mount_path=args.mount_path,
    )
    server_config = ServerConfig(
        port=args.port,
        cert_file=args.tls_cert_file,
        key_file=args.tls_private_key_file,
        log_level=args.log_level,
    )
    return webhook_config, server_config


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    try:
        args = build_parser(load_server_config()).parse_args(argv)
        webhook_config, server_config = configs_from_args(args)
        # Test if the hostpath of timezone file exists
        check_host_path(webhook_config)
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    from tzwebhook.api.webhook import run as run_webhook

    run_webhook(webhook_config, server_config, host=args.host)
    return 0


if __name__ == "__main__":
    sys.exit(main())
