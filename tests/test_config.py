"""Tests for enrichment configuration."""

from pathlib import Path

import pytest

from device_enrichment.config import EnrichmentConfig


@pytest.fixture
def clean_env(monkeypatch):
    """Remove enrichment variables from the environment."""
    import os
    for key in list(os.environ):
        if key.startswith("ENRICH_") or key == "LOG_LEVEL":
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestDefaults:
    """Tests for default configuration."""

    def test_default_communities(self):
        """Should try the standard communities, vendor one last."""
        config = EnrichmentConfig()
        assert config.snmp_communities == ["public", "private", "snmp", "admin", "itam_public"]

    def test_default_ports_and_timeouts(self):
        """Should use short per-probe timeouts."""
        config = EnrichmentConfig()
        assert config.http_ports == [80, 443, 8080, 8443]
        assert config.ipp_port == 631
        assert config.snmp_timeout == 2.0
        assert config.snmp_get_timeout == 3.0
        assert config.mdns_timeout == 6.0
        assert config.http_timeout == 3.0
        assert config.oui_timeout == 3.0

    def test_defaults_are_valid(self):
        """Should validate cleanly."""
        assert EnrichmentConfig().validate() == []


class TestFromEnv:
    """Tests for environment loading."""

    def test_env_overrides(self, clean_env):
        """Should read ENRICH_* variables."""
        clean_env.setenv("ENRICH_SNMP_COMMUNITIES", "corp, public")
        clean_env.setenv("ENRICH_HTTP_PORTS", "80,8080")
        clean_env.setenv("ENRICH_SNMP_GET_TIMEOUT", "1.5")
        clean_env.setenv("ENRICH_DEADLINE_SECONDS", "12.5")
        clean_env.setenv("ENRICH_MAX_CONCURRENT", "4")
        clean_env.setenv("ENRICH_ONVIF", "false")
        clean_env.setenv("ENRICH_OUI_API", "false")
        clean_env.setenv("LOG_LEVEL", "DEBUG")

        config = EnrichmentConfig.from_env()

        assert config.snmp_communities == ["corp", "public"]
        assert config.http_ports == [80, 8080]
        assert config.deadline_seconds == 12.5
        assert config.snmp_get_timeout == 1.5
        assert config.max_concurrent_devices == 4
        assert config.enable_onvif is False
        assert config.enable_snmp is True
        assert config.enable_oui_api is False
        assert config.log_level == "DEBUG"

    def test_env_defaults(self, clean_env):
        """Should fall back to defaults when nothing is set."""
        config = EnrichmentConfig.from_env()
        assert config == EnrichmentConfig()


class TestFromYaml:
    """Tests for YAML loading."""

    def test_missing_file(self, tmp_path):
        """Should return defaults for a missing file."""
        config = EnrichmentConfig.from_yaml(tmp_path / "missing.yaml")
        assert config == EnrichmentConfig()

    def test_load_sections(self, tmp_path):
        """Should read per-probe sections."""
        path = tmp_path / "enrichment.yaml"
        path.write_text(
            "snmp:\n"
            "  communities: [\"corp\"]\n"
            "  timeout: 1\n"
            "http:\n"
            "  ports: [8080]\n"
            "oui:\n"
            "  use_api: false\n"
            "probes:\n"
            "  mdns: false\n"
            "deadline_seconds: 10\n"
            "max_concurrent_devices: 2\n"
        )

        config = EnrichmentConfig.from_yaml(path)

        assert config.snmp_communities == ["corp"]
        assert config.snmp_timeout == 1
        assert config.http_ports == [8080]
        assert config.enable_oui_api is False
        assert config.enable_mdns is False
        assert config.enable_ipp is True
        assert config.deadline_seconds == 10
        assert config.max_concurrent_devices == 2

    def test_empty_file(self, tmp_path):
        """Should treat an empty file as defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert EnrichmentConfig.from_yaml(Path(path)) == EnrichmentConfig()


class TestValidate:
    """Tests for configuration validation."""

    def test_no_communities(self):
        """Should flag SNMP without communities."""
        config = EnrichmentConfig(snmp_communities=[])
        assert any("community" in e for e in config.validate())

    def test_no_communities_snmp_disabled(self):
        """Should accept empty communities when SNMP is off."""
        config = EnrichmentConfig(snmp_communities=[], enable_snmp=False)
        assert config.validate() == []

    def test_non_positive_timeout(self):
        """Should flag zero or negative timeouts."""
        config = EnrichmentConfig(http_timeout=0, deadline_seconds=-1)
        errors = config.validate()
        assert "http_timeout must be positive" in errors
        assert "deadline_seconds must be positive" in errors

    def test_bad_concurrency(self):
        """Should flag concurrency below one."""
        config = EnrichmentConfig(max_concurrent_devices=0)
        assert any("concurrency" in e for e in config.validate())

    def test_short_deadline_warns(self, caplog):
        """Should warn when the deadline cannot cover every probe."""
        config = EnrichmentConfig(deadline_seconds=30)

        with caplog.at_level("WARNING", logger="device_enrichment.config"):
            assert config.validate() == []

        assert "worst case" in caplog.text


class TestWorstCase:
    """Tests for the unresponsive-device time estimate."""

    def test_default_deadline_covers_every_probe(self):
        """Should give every default probe its full timeout on a silent device."""
        config = EnrichmentConfig()

        # SNMP 6 GETs x 3s, IPP 2+2+5, mDNS 6, SSDP 4, HTTP 4 x 3, ONVIF 4, OUI 3
        assert config.worst_case_seconds() == 56.0
        assert config.deadline_seconds >= config.worst_case_seconds()

    def test_disabled_probes_cost_nothing(self):
        """Should only count enabled probes."""
        config = EnrichmentConfig(
            enable_snmp=False, enable_ipp=False, enable_mdns=False,
            enable_ssdp=False, enable_onvif=False, enable_oui=False,
            http_ports=[80],
        )
        assert config.worst_case_seconds() == 3.0

    def test_many_communities(self):
        """Should charge one capped GET per community."""
        config = EnrichmentConfig(snmp_communities=[f"c{i}" for i in range(10)])
        assert config.worst_case_seconds() == 56.0 - 18.0 + 30.0
