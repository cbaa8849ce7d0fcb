# WORKFLOW: Core configuration management for the Export Compliance API.
# Used by: All modules throughout the application
# Configuration includes:
# - Database connection settings and record store backend
# - Catalog source (built-in markets or a JSON catalog file)
# - Record lifecycle (validity window, authorization validity)
# - Scoring weights, empty-ledger policy and readiness gate
# - Risk thresholds and timeline scheduling knobs
# - API settings (CORS, host, port) and logging
#
# Loaded at startup and passed to the compliance engine by reference.

from typing import Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./compliance.db"
    store_backend: str = "memory"  # memory | sql

    # Catalog
    catalog_path: Optional[str] = None

    # Record lifecycle
    record_validity_days: int = 365
    authorization_validity_days: int = 180
    assigned_inspector: str = "TBD"

    # Scoring
    score_weights: Dict[str, int] = {
        "checklist": 40,
        "certifications": 30,
        "testing": 20,
        "documentation": 10,
    }
    empty_ledger_full_credit: bool = False

    # Readiness gate
    readiness_pass_points: int = 90

    # Risk
    risk_thresholds: Dict[str, float] = {
        "critical": 4.0,
        "high": 3.0,
        "medium": 1.0,
    }
    risk_review_interval_days: int = 90

    # Timeline
    sampling_lead_days: int = 7
    at_risk_window_days: int = 7
    critical_milestone_weight: float = 2.0
    contingency_buffer_days: int = 14
    checklist_due_days: int = 45

    # API
    api_v1_prefix: str = "/api/v1"
    project_name: str = "Export Compliance API"
    version: str = "1.0.0"

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS
    allowed_origins: list[str] = ["*"]
    allowed_methods: list[str] = ["*"]
    allowed_headers: list[str] = ["*"]

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    @field_validator("score_weights")
    @classmethod
    def weights_cover_every_ledger(cls, v: Dict[str, int]) -> Dict[str, int]:
        expected = {"checklist", "certifications", "testing", "documentation"}
        if set(v) != expected:
            raise ValueError(f"score_weights must define exactly {sorted(expected)}")
        if sum(v.values()) != 100:
            raise ValueError("score_weights must sum to 100")
        if any(weight < 0 for weight in v.values()):
            raise ValueError("score_weights must be non-negative")
        return v

    @field_validator("risk_thresholds")
    @classmethod
    def thresholds_are_ordered(cls, v: Dict[str, float]) -> Dict[str, float]:
        missing = {"critical", "high", "medium"} - set(v)
        if missing:
            raise ValueError(f"risk_thresholds missing levels: {sorted(missing)}")
        if not v["critical"] >= v["high"] >= v["medium"]:
            raise ValueError("risk_thresholds must satisfy critical >= high >= medium")
        return v

    @field_validator("store_backend")
    @classmethod
    def known_backend(cls, v: str) -> str:
        if v not in ("memory", "sql"):
            raise ValueError("store_backend must be 'memory' or 'sql'")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        protected_namespaces = ('settings_',)


settings = Settings()
