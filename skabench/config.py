"""
SKA Workbench — Configuration System

Settings are validated by Pydantic. Precedence, lowest first:
1. field defaults below
2. the YAML file given to load_config (config/default.yaml ships with the repo)
3. the SKABENCH_* environment variables mapped in load_config
4. explicit overrides, used by the command line flags
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from skabench.primitives.common import Environment

# ─── Sub-configs ──────────────────────────────────────────────────


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


class WorkspaceConfig(BaseModel):
    file_suffix: str = ".xml"
    # When set, folder loads never ask for the environment again this session.
    load_environment: Environment | None = None


class SaveConfig(BaseModel):
    version_in_filename: bool = True
    environment_name: str = ""  # e.g. "Prod"; embedded as name_<env>_v<n>.xml
    auto_bump_versions: bool = False  # Accept version bump proposals without asking

    @field_validator("environment_name")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class ImportColumns(BaseModel):
    """Header names of the CSV asset export, matched exactly after trimming."""

    cn: str = "cn"
    name: str = "Name"
    email: str = "Email"
    organisation: str = "Organisation"
    user_id: str = "userID"
    user_id_integration: str = "userID Int"
    certificate: str = "cert"
    org_owner: str = "Org Owner"
    org_sec_off: str = "Org SecOff"
    org_op: str = "Org Op"


class ImportConfig(BaseModel):
    columns: ImportColumns = Field(default_factory=ImportColumns)
    role_separator: str = "||"
    encoding: str = "utf-8-sig"


class ReportConfig(BaseModel):
    membership_filename: str = "report_memberships.csv"
    users_filename: str = "report_users.csv"


# ─── Root Configuration ──────────────────────────────────────────


class SkaBenchConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="SKABENCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    save: SaveConfig = Field(default_factory=SaveConfig)
    ingest: ImportConfig = Field(default_factory=ImportConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SkaBenchConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}

    if log_level := os.environ.get("SKABENCH_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level
    if log_format := os.environ.get("SKABENCH_LOG_FORMAT"):
        raw.setdefault("logging", {})["format"] = log_format
    if env_name := os.environ.get("SKABENCH_SAVE__ENVIRONMENT_NAME"):
        raw.setdefault("save", {})["environment_name"] = env_name
    if load_env := os.environ.get("SKABENCH_WORKSPACE__LOAD_ENVIRONMENT"):
        raw.setdefault("workspace", {})["load_environment"] = load_env.lower()

    if overrides:
        raw = _deep_merge(raw, overrides)

    return SkaBenchConfig(**raw)
