#!/usr/bin/env python3
"""
Secret collection and generation.

Each slot is filled from, in order:
1. IPAM_<SLOT> environment variable (unattended runs)
2. An echo-suppressed prompt (interactive runs only)
3. A random value: N bytes from the OS CSPRNG, base64 encoded

Values are never echoed or logged while they are collected.
"""

from __future__ import annotations

import base64
import getpass
import hashlib
import logging
import os
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, Mapping, Optional

from . import console
from .config_constants import (
    MYSQL_PASSWORD,
    MYSQL_ROOT_PASSWORD,
    PHPIPAM_ADMIN_PASSWORD,
    SECRET_ENV_PREFIX,
    SECRET_SLOTS,
)

logger = logging.getLogger(__name__)

PromptFunc = Callable[[str], str]


class SecretPolicy(str, Enum):
    USER_SUPPLIED = 'user-supplied'
    AUTO_GENERATED = 'auto-generated'


@dataclass(frozen=True)
class Secret:
    name: str
    value: str = field(repr=False)
    policy: SecretPolicy
    byte_length: int
    title: str = ''
    purpose: str = ''
    encoding: str = 'base64'

    def fingerprint(self) -> str:
        """Short SHA-256 digest, safe to persist next to non-secret metadata."""
        return hashlib.sha256(self.value.encode()).hexdigest()[:8]


@dataclass(frozen=True)
class SecretSet:
    mysql_root: Secret
    mysql_app: Secret
    admin: Secret

    def __iter__(self) -> Iterator[Secret]:
        return iter((self.mysql_root, self.mysql_app, self.admin))

    def by_name(self) -> dict[str, Secret]:
        return {secret.name: secret for secret in self}

    def values(self) -> dict[str, str]:
        return {secret.name: secret.value for secret in self}


def generate_secret(byte_length: int) -> str:
    """Random bytes rendered in the same form as `openssl rand -base64 N`."""
    return base64.b64encode(secrets.token_bytes(byte_length)).decode('ascii')


def _read_prompt(prompt: PromptFunc, text: str) -> str:
    try:
        return prompt(text)
    except EOFError:
        # stdin closed mid-run; fall through to generation
        print('', flush=True)
        return ''


def provision_secret(
    name: str,
    title: str,
    purpose: str,
    byte_length: int,
    supplied: Optional[str] = None,
) -> Secret:
    """
    Build one Secret, generating a value when none was supplied.

    Whitespace-only input counts as empty; any other value is kept verbatim.
    """
    if supplied and supplied.strip():
        return Secret(name, supplied, SecretPolicy.USER_SUPPLIED, byte_length, title, purpose)
    return Secret(name, generate_secret(byte_length), SecretPolicy.AUTO_GENERATED, byte_length, title, purpose)


def provision_secrets(
    interactive: bool = True,
    prompt: PromptFunc = getpass.getpass,
    environ: Optional[Mapping[str, str]] = None,
) -> SecretSet:
    """
    Collect or generate all three installer secrets.

    Args:
        interactive: Prompt for slots not pre-seeded through the environment
        prompt: Echo-suppressing input function (getpass by default)
        environ: Environment mapping used for IPAM_<SLOT> lookups

    Returns:
        SecretSet with non-empty values for every slot
    """
    environ = os.environ if environ is None else environ

    if interactive:
        console.section('            PASSWORD CONFIGURATION')
        print('Please configure passwords for your phpIPAM installation.')
        print('You can enter custom passwords or press ENTER to auto-generate.')
        print('')

    collected: dict[str, Secret] = {}
    total = len(SECRET_SLOTS)
    for index, (name, title, purpose, byte_length) in enumerate(SECRET_SLOTS, start=1):
        supplied = environ.get(f"{SECRET_ENV_PREFIX}{name}", '')
        source = 'environment'

        if not supplied.strip() and interactive:
            print(f"{console.BLUE}[{index}/{total}] {title}{console.RESET}", flush=True)
            print(purpose, flush=True)
            noun = 'admin password' if name == PHPIPAM_ADMIN_PASSWORD else 'password'
            supplied = _read_prompt(prompt, f"Enter {noun} (or press ENTER to auto-generate): ")
            source = 'prompt'

        secret = provision_secret(name, title, purpose, byte_length, supplied)
        collected[name] = secret
        if secret.policy is SecretPolicy.USER_SUPPLIED:
            logger.debug(f"{name}: {secret.policy.value} (source: {source})")
            console.success(f"Using custom {title}")
        else:
            logger.debug(f"{name}: {secret.policy.value}")
            console.success(f"Auto-generated {title}")
        if interactive:
            print('', flush=True)

    return SecretSet(
        mysql_root=collected[MYSQL_ROOT_PASSWORD],
        mysql_app=collected[MYSQL_PASSWORD],
        admin=collected[PHPIPAM_ADMIN_PASSWORD],
    )
