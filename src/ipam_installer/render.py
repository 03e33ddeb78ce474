#!/usr/bin/env python3
"""
Jinja2 rendering for the stack definition, the environment file and the
credential report.

The compose template output depends only on the services and secrets passed
in; the environment file carries a generation-date comment and the report an
installation date, both supplied by the caller.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shlex
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, StrictUndefined, TemplateError

from .config import InstallSettings
from .config_constants import (
    DOCKER_COMPOSE_TEMPLATE,
    ENV_FILE_TEMPLATE,
    PRIVATE_FILE_MODE,
)
from .credentials import SecretSet
from .stack import ServiceSpec

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).with_name('templates')

# Values made only of these characters go into .env unquoted
_DOTENV_SAFE = re.compile(r'^[A-Za-z0-9+/=._:@%-]*$')


def yaml_quote(value: Any) -> str:
    """YAML double-quoted scalar (a JSON string is valid YAML)."""
    return json.dumps(str(value))


def compose_env(value: Any) -> str:
    """Quoted compose list entry; `$$` keeps compose from interpolating."""
    return json.dumps(str(value).replace('$', '$$'))


def dotenv_value(value: Any) -> str:
    text = str(value)
    if _DOTENV_SAFE.match(text):
        return text
    if "'" not in text:
        return f"'{text}'"
    escaped = text.replace('\\', '\\\\').replace('"', '\\"')
    return f'"{escaped}"'


def build_environment() -> Environment:
    env = Environment(
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters['yaml_quote'] = yaml_quote
    env.filters['compose_env'] = compose_env
    env.filters['dotenv_value'] = dotenv_value
    env.filters['shell_quote'] = lambda value: shlex.quote(str(value))
    return env


def render_jinja2(template_path: str | Path, context: dict) -> str:
    """
    Render a Jinja2 template file with the given context.
    """
    template_file = Path(template_path)
    if not template_file.is_absolute():
        template_file = TEMPLATE_DIR / template_file

    logger.debug(f"Rendering Jinja2 template: {template_file}")
    if not template_file.exists():
        raise FileNotFoundError(f"Template file not found: {template_file}")

    template_content = template_file.read_text(encoding='utf-8')
    logger.debug(f"  Template size: {len(template_content)} bytes")
    logger.debug(f"  Context keys available to template: {sorted(context)}")

    try:
        rendered = build_environment().from_string(template_content).render(**context)
    except TemplateError as e:
        raise TemplateError(f"Failed to render template {template_file}: {e}") from e

    logger.debug(f"  Rendered output size: {len(rendered)} bytes")
    return rendered


def write_private_file(path: Path, content: str) -> Path:
    """
    Write content readable and writable by the owner only.

    The mode is set at creation and re-applied, so an existing file with
    looser permissions is tightened as well.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_FILE_MODE)
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        f.write(content)
    os.chmod(path, PRIVATE_FILE_MODE)
    return path


def render_manifest(services: list[ServiceSpec], settings: InstallSettings) -> str:
    return render_jinja2(DOCKER_COMPOSE_TEMPLATE, {
        'services': services,
        'network_name': settings.network_name,
        'volume_name': settings.volume_name,
    })


def render_env_file(settings: InstallSettings, secrets: SecretSet, generated_at: datetime) -> str:
    return render_jinja2(ENV_FILE_TEMPLATE, {
        'secrets': secrets.values(),
        'database': {
            'name': settings.database_name,
            'user': settings.database_user,
            'host': settings.database_host,
            'port': settings.database_port,
        },
        'generated_at': generated_at.strftime('%a %b %d %H:%M:%S %Z %Y'),
    })


@dataclass(frozen=True)
class RenderedManifest:
    compose_path: Path
    env_path: Path
    compose_text: str


def write_manifest(
    settings: InstallSettings,
    services: list[ServiceSpec],
    secrets: SecretSet,
    generated_at: Optional[datetime] = None,
) -> RenderedManifest:
    """
    Render and write docker-compose.yml and .env into the install directory.

    Both files hold plaintext secrets and are written owner-only.
    """
    generated_at = generated_at or datetime.now().astimezone()
    settings.install_path.mkdir(parents=True, exist_ok=True)

    compose_text = render_manifest(services, settings)
    write_private_file(settings.compose_path, compose_text)
    logger.debug(f"Wrote {settings.compose_path} (mode {oct(PRIVATE_FILE_MODE)})")

    write_private_file(settings.env_path, render_env_file(settings, secrets, generated_at))
    logger.debug(f"Wrote {settings.env_path} (mode {oct(PRIVATE_FILE_MODE)})")

    return RenderedManifest(settings.compose_path, settings.env_path, compose_text)
