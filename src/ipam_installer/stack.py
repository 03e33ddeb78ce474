#!/usr/bin/env python3
"""Service definitions for the phpIPAM stack."""

from __future__ import annotations

from dataclasses import dataclass

from .config import InstallSettings
from .credentials import SecretSet


@dataclass(frozen=True)
class ServiceSpec:
    name: str
    image: str
    restart: str
    environment: tuple[tuple[str, str], ...] = ()
    ports: tuple[str, ...] = ()
    depends_on: tuple[str, ...] = ()
    volumes: tuple[str, ...] = ()
    networks: tuple[str, ...] = ()

    @property
    def container_name(self) -> str:
        return self.name


def _database_client_env(settings: InstallSettings, secrets: SecretSet) -> tuple[tuple[str, str], ...]:
    return (
        ('IPAM_DATABASE_HOST', settings.database_host),
        ('IPAM_DATABASE_NAME', settings.database_name),
        ('IPAM_DATABASE_USER', settings.database_user),
        ('IPAM_DATABASE_PASS', secrets.mysql_app.value),
        ('IPAM_DATABASE_PORT', str(settings.database_port)),
    )


def build_service_specs(settings: InstallSettings, secrets: SecretSet) -> list[ServiceSpec]:
    """
    Return the database, web and cron services in manifest order.

    Web and cron both reach the database over the stack network, so both
    depend on it.
    """
    networks = (settings.network_name,)

    database = ServiceSpec(
        name=settings.db_service,
        image=settings.db_image,
        restart=settings.restart_policy,
        environment=(
            ('MYSQL_ROOT_PASSWORD', secrets.mysql_root.value),
            ('MYSQL_DATABASE', settings.database_name),
            ('MYSQL_USER', settings.database_user),
            ('MYSQL_PASSWORD', secrets.mysql_app.value),
        ),
        volumes=(f"{settings.volume_name}:/var/lib/mysql",),
        networks=networks,
    )

    web = ServiceSpec(
        name=settings.web_service,
        image=settings.web_image,
        restart=settings.restart_policy,
        environment=_database_client_env(settings, secrets),
        ports=(f"{settings.web_host_port}:{settings.web_container_port}",),
        depends_on=(database.name,),
        networks=networks,
    )

    cron = ServiceSpec(
        name=settings.cron_service,
        image=settings.cron_image,
        restart=settings.restart_policy,
        environment=_database_client_env(settings, secrets) + (
            ('SCAN_INTERVAL', settings.scan_interval),
        ),
        depends_on=(database.name,),
        networks=networks,
    )

    return [database, web, cron]


def startup_order(services: list[ServiceSpec]) -> list[str]:
    """
    Topologically sort services so every dependency starts first.

    Ties keep manifest order.

    Raises:
        ValueError: unknown dependency or dependency cycle
    """
    by_name = {service.name: service for service in services}
    for service in services:
        for dependency in service.depends_on:
            if dependency not in by_name:
                raise ValueError(f"Service {service.name} depends on unknown service {dependency}")

    order: list[str] = []
    visiting: set[str] = set()

    def visit(name: str, chain: tuple[str, ...]) -> None:
        if name in order:
            return
        if name in visiting:
            cycle = ' -> '.join(chain + (name,))
            raise ValueError(f"Dependency cycle between services: {cycle}")
        visiting.add(name)
        for dependency in by_name[name].depends_on:
            visit(dependency, chain + (name,))
        visiting.discard(name)
        order.append(name)

    for service in services:
        visit(service.name, ())
    return order
