"""Tests for application wiring and the bundled configuration."""

import pytest
import yaml

from conftest import PROJECT_ROOT
from leadscore.app import LeadScoreApp
from leadscore.modules.scoring import ScoringEngine


# ===========================================================================
# 1. Settings YAML
# ===========================================================================
class TestSettingsYaml:
    """Configuration file should be loadable."""

    def _load(self):
        settings_path = PROJECT_ROOT / "config" / "settings.yaml"
        with open(settings_path) as fh:
            return yaml.safe_load(fh)

    def test_settings_file_exists(self):
        assert (PROJECT_ROOT / "config" / "settings.yaml").exists(), "config/settings.yaml not found"

    def test_settings_has_required_sections(self):
        config = self._load()
        for section in ("app", "database", "dataforseo", "location", "scoring"):
            assert section in config, "Missing config section: " + section

    def test_settings_app_name(self):
        assert self._load()["app"]["name"] == "Lead Score Engine"

    def test_bundled_gazetteers_exist(self):
        config = self._load()["location"]
        assert (PROJECT_ROOT / config["general_gazetteer"]).exists()
        assert (PROJECT_ROOT / config["region"]["gazetteer"]).exists()


# ===========================================================================
# 2. LeadScoreApp
# ===========================================================================
class TestLeadScoreApp:
    """Lifecycle and collaborator construction."""

    def _app(self, settings_file, tmp_path, **kwargs):
        return LeadScoreApp(config_path=settings_file, env_path=str(tmp_path / ".env"), **kwargs)

    def test_requires_initialize(self, settings_file, tmp_path):
        lead_app = self._app(settings_file, tmp_path)
        with pytest.raises(RuntimeError):
            lead_app.get_resolver()
        with pytest.raises(RuntimeError):
            lead_app.get_status()

    def test_missing_config_uses_defaults(self, tmp_path):
        lead_app = LeadScoreApp(
            config_path=str(tmp_path / "missing.yaml"),
            env_path=str(tmp_path / ".env"),
            init_database=False,
        )
        lead_app.initialize()
        assert lead_app.config == {}
        assert isinstance(lead_app.get_engine(), ScoringEngine)

    def test_resolver_from_config(self, settings_file, tmp_path):
        lead_app = self._app(settings_file, tmp_path, init_database=False)
        lead_app.initialize()
        resolver = lead_app.get_resolver()
        assert resolver is lead_app.get_resolver()
        assert resolver.resolve("St. Louis, MO").code == 1020618
        assert resolver.resolve("63999").code == 1020618
        assert resolver.resolve("10001").code == 1016367

    def test_env_file_is_loaded(self, settings_file, tmp_path, monkeypatch):
        monkeypatch.delenv("DATAFORSEO_LOGIN", raising=False)
        monkeypatch.delenv("DATAFORSEO_PASSWORD", raising=False)
        (tmp_path / ".env").write_text(
            "DATAFORSEO_LOGIN=env-user\nDATAFORSEO_PASSWORD=env-pass\n", encoding="utf-8"
        )
        lead_app = self._app(settings_file, tmp_path, init_database=False)
        lead_app.initialize()
        assert lead_app.get_client().has_credentials
        assert lead_app.get_client() is lead_app.get_client()

    def test_status(self, settings_file, tmp_path, monkeypatch):
        monkeypatch.delenv("DATAFORSEO_LOGIN", raising=False)
        monkeypatch.delenv("DATAFORSEO_PASSWORD", raising=False)
        lead_app = self._app(settings_file, tmp_path)
        lead_app.initialize()
        status = lead_app.get_status()
        assert set(status) == {"config", "gazetteer", "dataforseo", "database"}
        assert status["config"]["status"] == "ok"
        assert status["gazetteer"]["status"] == "ok"
        assert status["dataforseo"]["status"] == "warning"
        assert status["database"]["status"] == "ok"

    def test_build_workflow_with_injected_client(self, settings_file, tmp_path, mock_dataforseo_client):
        from leadscore.workflows import LeadScoringWorkflow

        lead_app = self._app(settings_file, tmp_path, init_database=False)
        lead_app.initialize()
        workflow = lead_app.build_workflow(client=mock_dataforseo_client)
        assert isinstance(workflow, LeadScoringWorkflow)
        assert workflow.get_pipeline_status() == {}
