#!/usr/bin/env python3
"""
Installer pipeline.

Stages run strictly in order and share one InstallContext. A stage either
returns a StageResult (ok or skipped) or raises an InstallerError; the driver
turns the error into a failed result and stops. Nothing is rolled back on
failure.

Default order:
1. Preflight           - root check, previous install detection
2. Credentials         - collect or generate the three secrets
3. Container engine    - packages, engine service, version check (optional)
4. Manifest            - docker-compose.yml and .env
5. Launch              - compose pull + up -d
6. Readiness           - HTTP probe with bounded retries
7. Network exposure    - firewalld rule when firewalld is active (optional)
8. Credential report   - report file, install record, printed summary

With --reset a Reset stage (compose down -v against the previous manifest)
runs between Container engine and Manifest.
"""

from __future__ import annotations

import getpass
import logging
import os
import shutil
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Mapping, Optional

from . import console
from .config import InstallSettings
from .credentials import PromptFunc, SecretSet, provision_secrets
from .errors import DependencyToolError, InstallerError, PipelineCancelled
from .firewall import FirewallManager
from .host import check_privilege, ensure_container_engine
from .launcher import StackLauncher
from .readiness import ProbeFunc, ReadinessGate, ReadinessOutcome, ReadinessState, WaitFunc
from .render import RenderedManifest, write_manifest
from .report import load_install_record, write_install_record, write_report
from .runner import CommandRunner
from .stack import ServiceSpec, build_service_specs, startup_order

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _stdin_is_tty() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


@dataclass
class Collaborators:
    """Everything the stages use to reach outside the process."""

    runner: CommandRunner = field(default_factory=CommandRunner)
    prompt: PromptFunc = getpass.getpass
    probe: Optional[ProbeFunc] = None
    wait: Optional[WaitFunc] = None
    geteuid: Callable[[], int] = os.geteuid
    which: Callable[[str], Optional[str]] = shutil.which
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)
    stdin_is_tty: Callable[[], bool] = _stdin_is_tty
    now: Callable[[], datetime] = _local_now


class StageStatus(str, Enum):
    OK = 'ok'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass(frozen=True)
class StageResult:
    stage: str
    status: StageStatus
    message: str = ''
    error: Optional[InstallerError] = None

    @classmethod
    def ok(cls, stage: str, message: str = '') -> "StageResult":
        return cls(stage, StageStatus.OK, message)

    @classmethod
    def skipped(cls, stage: str, message: str) -> "StageResult":
        return cls(stage, StageStatus.SKIPPED, message)

    @classmethod
    def failed(cls, stage: str, error: InstallerError) -> "StageResult":
        return cls(stage, StageStatus.FAILED, str(error), error)


@dataclass
class InstallContext:
    """State handed from stage to stage for a single run."""

    settings: InstallSettings
    started_at: datetime
    secrets: Optional[SecretSet] = None
    services: list[ServiceSpec] = field(default_factory=list)
    manifest: Optional[RenderedManifest] = None
    startup_order: list[str] = field(default_factory=list)
    readiness: Optional[ReadinessOutcome] = None
    firewall_configured: bool = False
    report_path: Optional[Path] = None
    record_path: Optional[Path] = None
    previous_install: Optional[dict] = None
    results: list[StageResult] = field(default_factory=list)

    def require_secrets(self) -> SecretSet:
        if self.secrets is None:
            raise InstallerError("Secrets have not been provisioned")
        return self.secrets


class Stage:
    name = 'stage'
    title = ''

    def run(self, ctx: InstallContext) -> StageResult:
        raise NotImplementedError


class PreflightStage(Stage):
    name = 'preflight'
    title = 'Checking host prerequisites'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        if ctx.settings.dry_run:
            logger.debug("Dry run: root privilege not required")
        else:
            check_privilege(self.collaborators.geteuid)
            console.success("Running as root")

        ctx.previous_install = load_install_record(ctx.settings)
        if ctx.previous_install:
            installed_at = ctx.previous_install.get('install', {}).get('installed_at', 'unknown date')
            console.warn(
                f"Existing installation from {installed_at} found in {ctx.settings.install_path}. "
                "An existing database volume keeps its original passwords; use --reset for a clean install."
            )
        return StageResult.ok(self.name)


class CredentialStage(Stage):
    name = 'credentials'
    title = 'Configuring passwords'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        interactive = not ctx.settings.non_interactive and self.collaborators.stdin_is_tty()
        if not interactive:
            logger.debug("Non-interactive run: secrets come from IPAM_* variables or are generated")

        ctx.secrets = provision_secrets(
            interactive=interactive,
            prompt=self.collaborators.prompt,
            environ=self.collaborators.environ,
        )
        console.success("Password configuration complete!")
        return StageResult.ok(self.name)


class EngineSetupStage(Stage):
    name = 'engine'
    title = 'Installing Docker and Docker Compose'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        if not ctx.settings.packages_enabled:
            return StageResult.skipped(self.name, "Package installation disabled")
        ensure_container_engine(ctx.settings, self.collaborators.runner, which=self.collaborators.which)
        return StageResult.ok(self.name)


class ResetStage(Stage):
    name = 'reset'
    title = 'Removing the previous stack'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        if not StackLauncher(ctx.settings, self.collaborators.runner).teardown():
            return StageResult.skipped(self.name, f"No previous {ctx.settings.compose_path.name} to tear down")
        return StageResult.ok(self.name)


class ManifestStage(Stage):
    name = 'manifest'
    title = 'Creating Docker Compose configuration'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        secrets = ctx.require_secrets()
        ctx.services = build_service_specs(ctx.settings, secrets)
        try:
            ctx.startup_order = startup_order(ctx.services)
        except ValueError as e:
            raise InstallerError(str(e)) from e

        ctx.manifest = write_manifest(ctx.settings, ctx.services, secrets, generated_at=self.collaborators.now())
        console.success(f"Docker Compose configuration created: {ctx.manifest.compose_path}")
        console.success(f"Environment file created: {ctx.manifest.env_path}")
        return StageResult.ok(self.name)


class LaunchStage(Stage):
    name = 'launch'
    title = 'Pulling Docker images and starting phpIPAM'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        launcher = StackLauncher(ctx.settings, self.collaborators.runner)
        try:
            ctx.startup_order = launcher.launch(ctx.services)
        except DependencyToolError as e:
            e.hint = (
                f"Containers that already started are left running. Inspect with "
                f"'cd {ctx.settings.install_path} && {ctx.settings.compose_display} ps' "
                f"or start over with --reset."
            )
            raise
        return StageResult.ok(self.name, ' -> '.join(ctx.startup_order))


class ReadinessStage(Stage):
    name = 'readiness'
    title = 'Waiting for phpIPAM to be ready'

    def __init__(self, collaborators: Collaborators, cancel: threading.Event) -> None:
        self.collaborators = collaborators
        self.cancel = cancel

    def run(self, ctx: InstallContext) -> StageResult:
        gate = ReadinessGate(
            ctx.settings,
            probe=self.collaborators.probe,
            cancel=self.cancel,
            wait=self.collaborators.wait,
        )
        ctx.readiness = gate.run()
        return StageResult.ok(self.name, f"ready after {ctx.readiness.attempts} attempt(s)")


class NetworkExposureStage(Stage):
    name = 'firewall'
    title = 'Configuring firewall'

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators

    def run(self, ctx: InstallContext) -> StageResult:
        if not ctx.settings.firewall_enabled:
            return StageResult.skipped(self.name, "Firewall configuration disabled")
        ctx.firewall_configured = FirewallManager(ctx.settings, self.collaborators.runner).expose()
        if not ctx.firewall_configured:
            return StageResult.skipped(self.name, f"{ctx.settings.firewall_unit} is not active")
        return StageResult.ok(self.name)


class ReportStage(Stage):
    name = 'report'
    title = 'Saving credentials'

    def run(self, ctx: InstallContext) -> StageResult:
        if ctx.readiness is None or ctx.readiness.state is not ReadinessState.READY:
            raise InstallerError("Refusing to write credentials before the stack is ready")
        secrets = ctx.require_secrets()

        ctx.report_path, text = write_report(ctx.settings, secrets, ctx.started_at)
        ctx.record_path = write_install_record(ctx.settings, secrets, ctx.started_at)

        print('', flush=True)
        print(text, flush=True)
        console.warn("IMPORTANT: Save the credentials above in a secure location!")
        console.success(f"Credentials saved to: {ctx.report_path}")
        return StageResult.ok(self.name, str(ctx.report_path))


def build_stages(
    settings: InstallSettings,
    collaborators: Collaborators,
    cancel: threading.Event,
) -> list[Stage]:
    """Ordered stage list; a dry run stops after the manifest."""
    stages: list[Stage] = [
        PreflightStage(collaborators),
        CredentialStage(collaborators),
    ]
    if settings.dry_run:
        return stages + [ManifestStage(collaborators)]

    stages.append(EngineSetupStage(collaborators))
    if settings.reset:
        stages.append(ResetStage(collaborators))
    return stages + [
        ManifestStage(collaborators),
        LaunchStage(collaborators),
        ReadinessStage(collaborators, cancel),
        NetworkExposureStage(collaborators),
        ReportStage(),
    ]


@dataclass
class PipelineResult:
    context: InstallContext
    error: Optional[InstallerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def results(self) -> list[StageResult]:
        return self.context.results


class PipelineDriver:
    """Run stages in order and stop at the first failure."""

    def __init__(self, stages: list[Stage], cancel: Optional[threading.Event] = None) -> None:
        self.stages = stages
        self.cancel = cancel or threading.Event()

    def run(self, ctx: InstallContext) -> PipelineResult:
        total = len(self.stages)
        for index, stage in enumerate(self.stages, start=1):
            console.step(index, total, stage.title)
            logger.debug(f"Stage {stage.name} starting")

            try:
                result = stage.run(ctx)
            except KeyboardInterrupt:
                self.cancel.set()
                result = StageResult.failed(stage.name, PipelineCancelled("Interrupted by operator"))
            except InstallerError as e:
                result = StageResult.failed(stage.name, e)
            except OSError as e:
                result = StageResult.failed(stage.name, InstallerError(f"Filesystem error: {e}"))

            ctx.results.append(result)
            logger.debug(f"Stage {stage.name} finished: {result.status.value}")

            if result.status is StageStatus.FAILED:
                console.error(f"{stage.title} failed: {result.message}")
                if result.error is not None and result.error.hint:
                    console.warn(result.error.hint)
                return PipelineResult(ctx, result.error)

            if result.status is StageStatus.SKIPPED:
                console.info(f"Skipped: {result.message}")
            print('', flush=True)

        return PipelineResult(ctx)
