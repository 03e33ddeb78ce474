#!/usr/bin/env python3
"""
Filename and fixed-value constants for the phpIPAM installer.

This is the single place for filenames, secret slot definitions and the
values phpIPAM expects out of the box. Everything an operator may want to
change lives in defaults.toml instead.
"""

# ============================================================================
# Generated files (relative to the install directory unless absolute)
# ============================================================================

DOCKER_COMPOSE_OUTPUT = 'docker-compose.yml'
ENV_FILE_OUTPUT = '.env'
INSTALL_RECORD_OUTPUT = 'install-record.toml'

# Packaged templates
DOCKER_COMPOSE_TEMPLATE = 'docker-compose.yml.j2'
ENV_FILE_TEMPLATE = 'env.j2'
CREDENTIALS_TEMPLATE = 'credentials.txt.j2'

# Packaged configuration defaults
DEFAULTS_CONFIG = 'defaults.toml'

# Environment variable pointing at an operator config file
CONFIG_ENV_VAR = 'IPAM_INSTALLER_CONFIG'

# Owner read/write only; applied to every file holding plaintext secrets
PRIVATE_FILE_MODE = 0o600

# ============================================================================
# Secret slots
# ============================================================================

# Environment variables named IPAM_<slot> pre-seed a slot without prompting
SECRET_ENV_PREFIX = 'IPAM_'

MYSQL_ROOT_PASSWORD = 'MYSQL_ROOT_PASSWORD'
MYSQL_PASSWORD = 'MYSQL_PASSWORD'
PHPIPAM_ADMIN_PASSWORD = 'PHPIPAM_ADMIN_PASSWORD'

# (name, title, purpose, random byte length) in prompt order
SECRET_SLOTS = (
    (
        MYSQL_ROOT_PASSWORD,
        'MySQL Root Password',
        'Used for database administration',
        32,
    ),
    (
        MYSQL_PASSWORD,
        'MySQL phpIPAM User Password',
        'Used by phpIPAM to connect to database',
        32,
    ),
    (
        PHPIPAM_ADMIN_PASSWORD,
        'phpIPAM Admin Password',
        'Password for logging into phpIPAM web interface',
        24,
    ),
)

# ============================================================================
# phpIPAM application
# ============================================================================

# Shipped with the phpIPAM schema; the operator must change it after login
DEFAULT_LOGIN_USER = 'Admin'
DEFAULT_LOGIN_PASSWORD = 'ipamadmin'

PRODUCT_NAME = 'phpIPAM'

# ============================================================================
# Package managers
# ============================================================================

# manager -> (refresh, upgrade, install) command prefixes
PACKAGE_MANAGER_COMMANDS = {
    'zypper': (
        ['zypper', 'refresh'],
        ['zypper', 'update', '-y'],
        ['zypper', 'install', '-y'],
    ),
    'apt-get': (
        ['apt-get', 'update'],
        ['apt-get', 'upgrade', '-y'],
        ['apt-get', 'install', '-y'],
    ),
    'dnf': (
        ['dnf', 'makecache'],
        ['dnf', 'upgrade', '-y'],
        ['dnf', 'install', '-y'],
    ),
}
