"""Application wiring: configuration, environment, database and workflow construction."""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class LeadScoreApp:
    """Central application object that loads settings and builds collaborators.

    Usage::

        app = LeadScoreApp()
        app.initialize()
        resolver = app.get_resolver()
        workflow = app.build_workflow()
    """

    def __init__(
        self,
        config_path: str = "config/settings.yaml",
        env_path: str = ".env",
        init_database: bool = True,
    ):
        self._config_path = config_path
        self._env_path = env_path
        self._init_database = init_database
        self.config: dict[str, Any] = {}
        self._initialized = False
        self._resolver = None
        self._client = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Load environment and configuration, then initialise the database."""
        if self._initialized:
            return

        env_file = Path(self._env_path)
        if env_file.exists():
            load_dotenv(env_file)
            logger.info("Loaded environment from %s", self._env_path)

        self.config = self._load_config()

        data_dir = self.config.get("app", {}).get("data_dir", "")
        if data_dir:
            Path(data_dir).mkdir(parents=True, exist_ok=True)

        if self._init_database:
            from leadscore.database import init_db
            db_cfg = self.config.get("database", {})
            init_db(database_url=db_cfg.get("url"), echo=db_cfg.get("echo", False))

        self._initialized = True
        logger.info("LeadScoreApp initialised.")

    def _load_config(self) -> dict[str, Any]:
        """Load the YAML configuration file."""
        config_file = Path(self._config_path)
        if not config_file.exists():
            logger.warning("Config file not found: %s (using defaults)", self._config_path)
            return {}
        with open(config_file, "r", encoding="utf-8") as fh:
            config = yaml.safe_load(fh) or {}
        logger.info("Configuration loaded from %s", self._config_path)
        return config

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("Call initialize() before using the application.")

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def get_resolver(self):
        """Lazy-build the location resolver from the configured gazetteers."""
        self._ensure_initialized()
        if self._resolver is None:
            from leadscore.modules.location import DEFAULT_LOCATION_CODE, build_resolver
            loc_cfg = self.config.get("location", {})
            region_cfg = loc_cfg.get("region") or {}
            zip_range = region_cfg.get("zip_range")
            kwargs: dict[str, Any] = {}
            if region_cfg:
                kwargs = {
                    "region_csv": region_cfg.get("gazetteer"),
                    "region_name": region_cfg.get("name", "Missouri"),
                    "region_abbreviations": tuple(region_cfg.get("abbreviations", ["mo"])),
                    "region_zip_range": tuple(zip_range) if zip_range else None,
                    "region_fallback_code": region_cfg.get("fallback_code", 1020618),
                    "region_fallback_name": region_cfg.get(
                        "fallback_name", "St. Louis,Missouri,United States"
                    ),
                }
            self._resolver = build_resolver(
                loc_cfg.get("general_gazetteer", "data/locations_us.csv"),
                default_code=loc_cfg.get("default_code", DEFAULT_LOCATION_CODE),
                **kwargs,
            )
        return self._resolver

    def get_engine(self):
        from leadscore.modules.scoring import ScoringEngine
        window = self.config.get("scoring", {}).get("review_velocity_window_days", 90)
        return ScoringEngine(velocity_window_days=window)

    def get_client(self):
        """Lazy-build the single DataForSEO client for this process."""
        self._ensure_initialized()
        if self._client is None:
            from leadscore.integrations.dataforseo import DATAFORSEO_BASE_URL, DataForSEOClient
            from leadscore.utils.rate_limiter import RateLimiter
            cfg = self.config.get("dataforseo", {})
            limits = cfg.get("rate_limits", {})
            self._client = DataForSEOClient(
                base_url=cfg.get("base_url", DATAFORSEO_BASE_URL),
                timeout=cfg.get("timeout", 60),
                max_retries=cfg.get("max_retries", 3),
                rate_limiter=RateLimiter(
                    requests_per_minute=limits.get("requests_per_minute", 60),
                    requests_per_day=limits.get("requests_per_day", 1000),
                    name="dataforseo",
                ),
            )
        return self._client

    def build_workflow(self, client: Optional[Any] = None):
        from leadscore.workflows import LeadScoringWorkflow
        return LeadScoringWorkflow(
            client=client or self.get_client(),
            resolver=self.get_resolver(),
            engine=self.get_engine(),
        )

    def get_status(self) -> dict[str, dict[str, Any]]:
        """Return health status of configuration, gazetteers, credentials and database."""
        self._ensure_initialized()
        status: dict[str, dict[str, Any]] = {}

        status["config"] = {
            "status": "ok" if self.config else "warning",
            "details": self._config_path if self.config else "defaults (no config file)",
        }

        try:
            resolver = self.get_resolver()
            status["gazetteer"] = {"status": "ok", "details": repr(resolver)}
        except OSError as exc:
            status["gazetteer"] = {"status": "error", "details": str(exc)}

        has_creds = bool(os.getenv("DATAFORSEO_LOGIN") and os.getenv("DATAFORSEO_PASSWORD"))
        status["dataforseo"] = {
            "status": "ok" if has_creds else "warning",
            "details": "credentials configured" if has_creds else "DATAFORSEO_LOGIN / DATAFORSEO_PASSWORD not set",
        }

        if self._init_database:
            try:
                from leadscore.database import table_names
                tables = table_names()
                status["database"] = {
                    "status": "ok" if "lead_score_records" in tables else "warning",
                    "details": f"{len(tables)} tables",
                }
            except Exception as exc:
                status["database"] = {"status": "error", "details": str(exc)}
        return status
