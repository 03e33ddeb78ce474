#!/usr/bin/env python3
"""
Credential report and install record.

The report is the only place the secrets survive after the run; the install
record keeps non-secret metadata plus short fingerprints so a later run can
tell that an installation already exists.
"""

from __future__ import annotations

import logging
import tomllib
from datetime import datetime
from pathlib import Path
from typing import Optional

import tomli_w

from . import __version__
from .config import InstallSettings
from .config_constants import (
    CREDENTIALS_TEMPLATE,
    DEFAULT_LOGIN_PASSWORD,
    DEFAULT_LOGIN_USER,
    PRIVATE_FILE_MODE,
)
from .credentials import SecretSet
from .render import render_jinja2, write_private_file

logger = logging.getLogger(__name__)


def public_url(settings: InstallSettings, host: str = 'your-server-ip') -> str:
    if settings.web_host_port == 80:
        return f"http://{host}"
    return f"http://{host}:{settings.web_host_port}"


def render_report(settings: InstallSettings, secrets: SecretSet, installed_at: datetime) -> str:
    return render_jinja2(CREDENTIALS_TEMPLATE, {
        'installed_at': installed_at.strftime('%a %b %d %H:%M:%S %Z %Y'),
        'install_path': settings.install_path,
        'secrets': list(secrets),
        'root_password': secrets.mysql_root.value,
        'app_password': secrets.mysql_app.value,
        'database': {
            'name': settings.database_name,
            'user': settings.database_user,
            'host': settings.database_host,
            'port': settings.database_port,
        },
        'db_service': settings.db_service,
        'web_service': settings.web_service,
        'web_url': public_url(settings),
        'default_user': DEFAULT_LOGIN_USER,
        'default_password': DEFAULT_LOGIN_PASSWORD,
        'compose': settings.compose_display,
        'compose_file': settings.compose_path,
        'env_file': settings.env_path,
        'record_file': settings.record_path,
        'credentials_file': settings.credentials_file,
    })


def write_report(settings: InstallSettings, secrets: SecretSet, installed_at: datetime) -> tuple[Path, str]:
    """Render the report and write it owner-only. Returns (path, text)."""
    text = render_report(settings, secrets, installed_at)
    write_private_file(settings.credentials_file, text)
    logger.debug(f"Wrote {settings.credentials_file} (mode {oct(PRIVATE_FILE_MODE)})")
    return settings.credentials_file, text


def build_install_record(settings: InstallSettings, secrets: SecretSet, installed_at: datetime) -> dict:
    return {
        'install': {
            'installed_at': installed_at.isoformat(),
            'installer_version': __version__,
            'path': str(settings.install_path),
            'compose_file': str(settings.compose_path),
            'env_file': str(settings.env_path),
            'credentials_file': str(settings.credentials_file),
            'compose_command': list(settings.compose_command),
        },
        'images': {
            settings.db_service: settings.db_image,
            settings.web_service: settings.web_image,
            settings.cron_service: settings.cron_image,
        },
        'secrets': {
            'state': {secret.name: secret.fingerprint() for secret in secrets},
            'policy': {secret.name: secret.policy.value for secret in secrets},
        },
    }


def write_install_record(settings: InstallSettings, secrets: SecretSet, installed_at: datetime) -> Path:
    """
    Write install-record.toml using tomli_w.
    """
    record = build_install_record(settings, secrets, installed_at)
    write_private_file(settings.record_path, tomli_w.dumps(record))
    return settings.record_path


def load_install_record(settings: InstallSettings) -> Optional[dict]:
    """Return the previous install record, or None when absent or unreadable."""
    path = settings.record_path
    if not path.exists():
        return None
    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Ignoring unreadable install record {path}: {e}")
        return None
