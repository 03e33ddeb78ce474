#!/usr/bin/env python3
"""
Service definition and startup order tests.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
from ipam_installer.stack import ServiceSpec, build_service_specs, startup_order  # noqa: E402


class TestBuildServiceSpecs:
    def test_three_services_in_manifest_order(self, settings, sample_secrets):
        services = build_service_specs(settings, sample_secrets)

        assert [s.name for s in services] == ["phpipam-db", "phpipam-web", "phpipam-cron"]
        assert [s.image for s in services] == [
            "mariadb:latest",
            "phpipam/phpipam-www:latest",
            "phpipam/phpipam-cron:latest",
        ]

    def test_web_and_cron_depend_on_database(self, settings, sample_secrets):
        db, web, cron = build_service_specs(settings, sample_secrets)

        assert db.depends_on == ()
        assert web.depends_on == ("phpipam-db",)
        assert cron.depends_on == ("phpipam-db",)

    def test_secrets_flow_into_environment(self, settings, sample_secrets):
        db, web, cron = build_service_specs(settings, sample_secrets)

        assert dict(db.environment)["MYSQL_ROOT_PASSWORD"] == "RootSecret+Value/1="
        assert dict(db.environment)["MYSQL_PASSWORD"] == "AppSecretValue2"
        assert dict(web.environment)["IPAM_DATABASE_PASS"] == "AppSecretValue2"
        assert dict(cron.environment)["IPAM_DATABASE_PASS"] == "AppSecretValue2"
        assert dict(cron.environment)["SCAN_INTERVAL"] == "1h"

    def test_renamed_database_service_is_the_client_host(self, make_settings, sample_secrets):
        settings = make_settings({"services": {"db": {"name": "ipam-mariadb"}}})

        db, web, cron = build_service_specs(settings, sample_secrets)

        assert db.name == "ipam-mariadb"
        assert dict(web.environment)["IPAM_DATABASE_HOST"] == "ipam-mariadb"
        assert dict(cron.environment)["IPAM_DATABASE_HOST"] == "ipam-mariadb"
        assert web.depends_on == ("ipam-mariadb",)

    def test_web_port_and_db_volume(self, make_settings, sample_secrets):
        settings = make_settings({"services": {"web": {"host_port": 8080}}})

        db, web, _ = build_service_specs(settings, sample_secrets)

        assert web.ports == ("8080:80",)
        assert db.volumes == ("phpipam-db-data:/var/lib/mysql",)


class TestStartupOrder:
    def test_database_starts_first(self, settings, sample_secrets):
        order = startup_order(build_service_specs(settings, sample_secrets))

        assert order == ["phpipam-db", "phpipam-web", "phpipam-cron"]

    def test_dependency_listed_after_dependent_still_starts_first(self):
        services = [
            ServiceSpec("web", "img", "always", depends_on=("db",)),
            ServiceSpec("db", "img", "always"),
        ]

        assert startup_order(services) == ["db", "web"]

    def test_unknown_dependency_rejected(self):
        services = [ServiceSpec("web", "img", "always", depends_on=("missing",))]

        with pytest.raises(ValueError, match="unknown service missing"):
            startup_order(services)

    def test_cycle_rejected(self):
        services = [
            ServiceSpec("a", "img", "always", depends_on=("b",)),
            ServiceSpec("b", "img", "always", depends_on=("a",)),
        ]

        with pytest.raises(ValueError, match="cycle"):
            startup_order(services)
