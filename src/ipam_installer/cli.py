#!/usr/bin/env python3
"""
ipam-installer CLI entry point.

Installs phpIPAM as a Docker Compose stack (MariaDB, phpIPAM web, phpIPAM
cron) and writes the generated credentials to a root-only report file.
"""

from __future__ import annotations

import argparse
import logging
import threading
import traceback
from pathlib import Path
from typing import Optional

from . import __version__, console
from .config import load_config, settings_from_config
from .config_constants import PRODUCT_NAME
from .errors import ConfigError
from .pipeline import Collaborators, InstallContext, PipelineDriver, build_stages
from .report import public_url

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[list] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for the installer.

    Supports arguments:
    1. -c, --config <path> - Operator TOML config (deep-merged over defaults)
    2. --install-dir <path> - Where docker-compose.yml and .env are written
    3. --credentials-file <path> - Where the credential report is written
    4. -y, --yes - Non-interactive mode (no password prompts)
    5. --dry-run - Render configuration only; run no external command
    6. --reset - Remove existing containers and volumes before starting
    7. --skip-packages - Do not touch the package manager or engine service
    8. --skip-system-update - Install Docker if missing but skip the host upgrade
    9. --skip-firewall - Never change firewall rules
    10. --compose-command <cmd> - Compose CLI, e.g. "docker-compose"
    11. --probe-url / --max-attempts / --interval - Readiness gate tuning
    12. --log-level <level> - DEBUG, INFO, WARNING or ERROR
    """
    parser = argparse.ArgumentParser(
        prog='ipam-installer',
        description='Install phpIPAM with Docker Compose',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  # Interactive install (prompts for three passwords, ENTER generates)
  %(prog)s

  # Unattended install with generated passwords
  %(prog)s -y

  # Render docker-compose.yml and .env only
  %(prog)s --dry-run --install-dir ./phpipam

  # Use the standalone compose binary and skip package management
  %(prog)s --compose-command docker-compose --skip-packages
        '''
    )

    parser.add_argument(
        '-c', '--config',
        type=Path,
        default=None,
        metavar='PATH',
        help='TOML config file (default: $IPAM_INSTALLER_CONFIG, else built-in defaults)'
    )

    parser.add_argument(
        '--install-dir',
        type=Path,
        default=None,
        metavar='PATH',
        help='Installation directory (default: /opt/phpipam-docker)'
    )

    parser.add_argument(
        '--credentials-file',
        type=Path,
        default=None,
        metavar='PATH',
        help='Credential report path (default: /root/phpipam_credentials.txt)'
    )

    parser.add_argument(
        '-y', '--yes',
        action='store_true',
        help='Non-interactive mode (use IPAM_* variables or generate passwords)'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Render docker-compose.yml and .env only; run no external command'
    )

    parser.add_argument(
        '--reset',
        action='store_true',
        help='Run "compose down -v" before starting (destroys the database volume)'
    )

    parser.add_argument(
        '--skip-packages',
        action='store_true',
        help='Skip package manager and Docker service setup'
    )

    parser.add_argument(
        '--skip-system-update',
        action='store_true',
        help='Skip refreshing and upgrading host packages'
    )

    parser.add_argument(
        '--skip-firewall',
        action='store_true',
        help='Do not configure firewalld'
    )

    parser.add_argument(
        '--compose-command',
        type=str,
        default=None,
        metavar='CMD',
        help='Compose CLI to invoke (default: "docker compose")'
    )

    parser.add_argument(
        '--probe-url',
        type=str,
        default=None,
        metavar='URL',
        help='Readiness probe URL (default: http://localhost)'
    )

    parser.add_argument(
        '--max-attempts',
        type=int,
        default=None,
        metavar='N',
        help='Readiness probe attempts (default: 30)'
    )

    parser.add_argument(
        '--interval',
        type=float,
        default=None,
        metavar='SECONDS',
        help='Seconds between readiness probes (default: 5)'
    )

    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default=None,
        help='Log level (default: INFO)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """Translate command-line flags into a nested config override dict."""
    overrides: dict = {}

    def put(section: str, key: str, value) -> None:
        overrides.setdefault(section, {})[key] = value

    if args.install_dir is not None:
        put('install', 'path', str(args.install_dir))
    if args.credentials_file is not None:
        put('install', 'credentials_file', str(args.credentials_file))
    if args.compose_command:
        put('engine', 'compose_command', args.compose_command.split())
    if args.skip_packages:
        put('packages', 'enabled', False)
    if args.skip_system_update:
        put('packages', 'update_system', False)
    if args.skip_firewall:
        put('firewall', 'enabled', False)
    if args.probe_url is not None:
        put('readiness', 'url', args.probe_url)
    if args.max_attempts is not None:
        put('readiness', 'max_attempts', args.max_attempts)
    if args.interval is not None:
        put('readiness', 'interval_seconds', args.interval)
    if args.log_level is not None:
        put('logging', 'level', args.log_level)
    return overrides


def main(argv: Optional[list] = None, collaborators: Optional[Collaborators] = None) -> int:
    args = parse_arguments(argv)

    try:
        config = load_config(args.config, build_overrides(args))
        settings = settings_from_config(
            config,
            non_interactive=args.yes,
            dry_run=args.dry_run,
            reset=args.reset,
        )
    except ConfigError as e:
        console.error(str(e))
        return 1

    console.configure_logging(settings.log_level)
    collaborators = collaborators or Collaborators()

    console.banner([
        f"{PRODUCT_NAME} Docker Installation",
        f"ipam-installer {__version__}",
    ])
    print('', flush=True)
    logger.debug(f"Install path: {settings.install_path}")
    logger.debug(f"Compose command: {settings.compose_display}")

    cancel = threading.Event()
    driver = PipelineDriver(build_stages(settings, collaborators, cancel), cancel)
    ctx = InstallContext(settings=settings, started_at=collaborators.now())

    try:
        result = driver.run(ctx)
    except Exception as e:
        console.error(f"Execution failed: {e}")
        traceback.print_exc()
        return 1

    if not result.ok:
        return 1

    if settings.dry_run:
        console.success(f"Dry run complete. Review {settings.compose_path} and {settings.env_path}")
        return 0

    print('', flush=True)
    console.banner([f"{PRODUCT_NAME} Docker Installation Complete!"])
    console.success(f"Installation complete! Access {PRODUCT_NAME} at {public_url(settings)}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
