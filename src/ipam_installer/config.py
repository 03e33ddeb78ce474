#!/usr/bin/env python3
"""
Installer configuration.

Load order (later wins, key-level deep merge):
1. defaults.toml shipped inside the package
2. Operator TOML file (--config or IPAM_INSTALLER_CONFIG)
3. Command-line overrides

The merged dict is converted once into an immutable InstallSettings that is
handed to every pipeline stage.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .config_constants import (
    CONFIG_ENV_VAR,
    DEFAULTS_CONFIG,
    DOCKER_COMPOSE_OUTPUT,
    ENV_FILE_OUTPUT,
    INSTALL_RECORD_OUTPUT,
    PACKAGE_MANAGER_COMMANDS,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)


def parse_toml(file_path: Path | str) -> dict:
    """
    Parse a TOML file, turning read and syntax problems into ConfigError.
    """
    path = Path(file_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, 'rb') as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"TOML syntax error in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e


def deep_merge_configs(base: dict, overrides: dict) -> dict:
    """
    Deep merge two config dicts (key-level merge, overrides win).
    """
    result = base.copy()

    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge_configs(result[key], value)
        else:
            if key in result:
                logger.debug(f"  Override: {key} = {value} (was: {result[key]})")
            else:
                logger.debug(f"  New key: {key} = {value}")
            result[key] = value
    return result


def load_config(config_path: Optional[Path] = None, overrides: Optional[dict] = None) -> dict:
    """
    Build the merged configuration dict.

    Args:
        config_path: Operator TOML file; falls back to $IPAM_INSTALLER_CONFIG
        overrides: Nested dict of command-line overrides

    Returns:
        Merged configuration dictionary
    """
    config = parse_toml(Path(__file__).with_name(DEFAULTS_CONFIG))

    if config_path is None and os.getenv(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])

    if config_path is not None:
        logger.debug(f"Merging operator config: {config_path}")
        config = deep_merge_configs(config, parse_toml(config_path))

    if overrides:
        logger.debug("Merging command-line overrides")
        config = deep_merge_configs(config, overrides)

    return config


@dataclass(frozen=True)
class InstallSettings:
    install_path: Path
    credentials_file: Path
    compose_command: tuple[str, ...]
    engine_service: str
    packages_enabled: bool
    package_manager: str
    update_system: bool
    engine_packages: tuple[str, ...]
    database_name: str
    database_user: str
    database_host: str
    database_port: int
    restart_policy: str
    db_service: str
    db_image: str
    web_service: str
    web_image: str
    web_host_port: int
    web_container_port: int
    cron_service: str
    cron_image: str
    scan_interval: str
    network_name: str
    volume_name: str
    probe_url: str
    max_attempts: int
    interval_seconds: float
    request_timeout_seconds: float
    deadline_seconds: float
    firewall_enabled: bool
    firewall_unit: str
    firewall_service: str
    log_level: str = "INFO"
    non_interactive: bool = False
    dry_run: bool = False
    reset: bool = False

    @property
    def compose_path(self) -> Path:
        return self.install_path / DOCKER_COMPOSE_OUTPUT

    @property
    def env_path(self) -> Path:
        return self.install_path / ENV_FILE_OUTPUT

    @property
    def record_path(self) -> Path:
        return self.install_path / INSTALL_RECORD_OUTPUT

    @property
    def compose_display(self) -> str:
        """Compose command as an operator would type it."""
        return ' '.join(self.compose_command)


def _section(config: dict, *path: str) -> dict:
    current: Any = config
    for part in path:
        current = current.get(part, {}) if isinstance(current, dict) else {}
    if not isinstance(current, dict):
        raise ConfigError(f"[{'.'.join(path)}] must be a table")
    return current


def _require(section: dict, key: str, kind: type, where: str) -> Any:
    if key not in section:
        raise ConfigError(f"Missing required config value: {where}.{key}")
    value = section[key]
    # bool is an int subclass; reject it where a number is expected
    if kind in (int, float) and isinstance(value, bool):
        raise ConfigError(f"{where}.{key} must be a number, got {value!r}")
    if kind is float and isinstance(value, int):
        value = float(value)
    if not isinstance(value, kind):
        raise ConfigError(f"{where}.{key} must be {kind.__name__}, got {value!r}")
    return value


def _require_str_list(section: dict, key: str, where: str) -> tuple[str, ...]:
    value = _require(section, key, list, where)
    if not value or not all(isinstance(item, str) and item for item in value):
        raise ConfigError(f"{where}.{key} must be a non-empty list of strings")
    return tuple(value)


def default_probe_url(host_port: int) -> str:
    if host_port == 80:
        return "http://localhost"
    return f"http://localhost:{host_port}"


def settings_from_config(config: dict, **flags: Any) -> InstallSettings:
    """
    Validate the merged config dict and freeze it into InstallSettings.

    Extra keyword flags (non_interactive, dry_run, reset) are run options
    that have no config-file counterpart.
    """
    install = _section(config, 'install')
    engine = _section(config, 'engine')
    packages = _section(config, 'packages')
    database = _section(config, 'database')
    services = _section(config, 'services')
    db = _section(config, 'services', 'db')
    web = _section(config, 'services', 'web')
    cron = _section(config, 'services', 'cron')
    network = _section(config, 'network')
    readiness = _section(config, 'readiness')
    firewall = _section(config, 'firewall')
    logging_cfg = _section(config, 'logging')

    manager = _require(packages, 'manager', str, 'packages')
    if manager not in PACKAGE_MANAGER_COMMANDS:
        raise ConfigError(
            f"packages.manager must be one of {', '.join(sorted(PACKAGE_MANAGER_COMMANDS))}, got {manager!r}"
        )

    web_host_port = _require(web, 'host_port', int, 'services.web')
    web_container_port = _require(web, 'container_port', int, 'services.web')
    for port in (web_host_port, web_container_port):
        if not 0 < port < 65536:
            raise ConfigError(f"services.web ports must be between 1 and 65535, got {port}")

    max_attempts = _require(readiness, 'max_attempts', int, 'readiness')
    if max_attempts < 1:
        raise ConfigError(f"readiness.max_attempts must be at least 1, got {max_attempts}")
    interval = _require(readiness, 'interval_seconds', float, 'readiness')
    request_timeout = _require(readiness, 'request_timeout_seconds', float, 'readiness')
    deadline = _require(readiness, 'deadline_seconds', float, 'readiness')
    if interval < 0 or request_timeout <= 0 or deadline < 0:
        raise ConfigError("readiness intervals and timeouts must not be negative")

    probe_url = _require(readiness, 'url', str, 'readiness') or default_probe_url(web_host_port)
    db_service = _require(db, 'name', str, 'services.db')

    return InstallSettings(
        install_path=Path(_require(install, 'path', str, 'install')),
        credentials_file=Path(_require(install, 'credentials_file', str, 'install')),
        compose_command=_require_str_list(engine, 'compose_command', 'engine'),
        engine_service=_require(engine, 'service', str, 'engine'),
        packages_enabled=_require(packages, 'enabled', bool, 'packages'),
        package_manager=manager,
        update_system=_require(packages, 'update_system', bool, 'packages'),
        engine_packages=_require_str_list(packages, 'names', 'packages'),
        database_name=_require(database, 'name', str, 'database'),
        database_user=_require(database, 'user', str, 'database'),
        database_host=_require(database, 'host', str, 'database') or db_service,
        database_port=_require(database, 'port', int, 'database'),
        restart_policy=_require(services, 'restart', str, 'services'),
        db_service=db_service,
        db_image=_require(db, 'image', str, 'services.db'),
        web_service=_require(web, 'name', str, 'services.web'),
        web_image=_require(web, 'image', str, 'services.web'),
        web_host_port=web_host_port,
        web_container_port=web_container_port,
        cron_service=_require(cron, 'name', str, 'services.cron'),
        cron_image=_require(cron, 'image', str, 'services.cron'),
        scan_interval=_require(cron, 'scan_interval', str, 'services.cron'),
        network_name=_require(network, 'name', str, 'network'),
        volume_name=_require(network, 'volume', str, 'network'),
        probe_url=probe_url,
        max_attempts=max_attempts,
        interval_seconds=interval,
        request_timeout_seconds=request_timeout,
        deadline_seconds=deadline,
        firewall_enabled=_require(firewall, 'enabled', bool, 'firewall'),
        firewall_unit=_require(firewall, 'unit', str, 'firewall'),
        firewall_service=_require(firewall, 'service', str, 'firewall'),
        log_level=_require(logging_cfg, 'level', str, 'logging'),
        **flags,
    )
