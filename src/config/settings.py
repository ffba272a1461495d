# src/config/settings.py - v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for account credentials, container names, pool
shape, task command template, worker paths and logging. Every operation
receives its values from a Settings instance; nothing is read from
module-level constants.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === BATCH ACCOUNT ===
    batch_account_name: str = ""
    batch_account_key: str = ""
    batch_region: str = ""
    batch_account_url: str = ""

    # === STORAGE ACCOUNT ===
    storage_backend: Literal["azure", "s3"] = "azure"
    storage_account_name: str = ""
    storage_account_key: str = ""
    storage_account_url: str = ""
    s3_region: str = ""
    s3_endpoint_url: str = ""

    # === Containers ===
    source_container: str = "ocr-source"
    binaries_container: str = "tesseract"
    results_container: str = "ocr-results"

    # === Pool ===
    pool_name: str = "batchtesseractsamplepool"
    pool_node_count: int = 5
    pool_vm_size: str = "standard_d2s_v3"
    pool_image_publisher: str = "canonical"
    pool_image_offer: str = "0001-com-ubuntu-server-jammy"
    pool_image_sku: str = "22_04-lts"
    pool_node_agent_sku: str = "batch.node.ubuntu 22.04"
    node_os: Literal["linux", "windows"] = "linux"
    pool_start_command: str = "/bin/sh -c 'cp -r . \"$AZ_BATCH_NODE_SHARED_DIR\"'"

    # === Tasks ===
    task_shell: str = "/bin/sh -c"
    task_wrapper_command: str = "$AZ_BATCH_NODE_SHARED_DIR/batchocr-worker"
    wait_timeout_minutes: float = 30.0
    wait_poll_interval_seconds: float = 5.0
    grant_lifetime_days: int = 365

    # === Worker ===
    worker_base_dir: Path | None = None
    tesseract_relative_path: str = "tesseract/tesseract"
    ocr_output_suffix: str = ".txt"
    download_timeout_seconds: float = 300.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("pool_node_count", "grant_lifetime_days")
    @classmethod
    def validate_positive(cls, v: int, info) -> int:  # noqa: N805
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("wait_timeout_minutes", "wait_poll_interval_seconds")
    @classmethod
    def validate_positive_duration(cls, v: float, info) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError(f"{info.field_name} must be > 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.storage_backend == "azure" and self.storage_account_key and not (
            self.storage_account_name or self.storage_account_url
        ):
            errors.append(
                "STORAGE_ACCOUNT_KEY is set but neither STORAGE_ACCOUNT_NAME "
                "nor STORAGE_ACCOUNT_URL is"
            )

        if self.batch_account_key and not self.batch_account_name:
            errors.append("BATCH_ACCOUNT_KEY is set but BATCH_ACCOUNT_NAME is not")

        if not self.ocr_output_suffix.startswith("."):
            errors.append("OCR_OUTPUT_SUFFIX must start with '.'")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def resolved_batch_url(self) -> str:
        """Batch service endpoint, derived from account name and region."""
        if self.batch_account_url:
            return self.batch_account_url.rstrip("/")
        return f"https://{self.batch_account_name}.{self.batch_region}.batch.azure.com"

    @property
    def resolved_storage_url(self) -> str:
        """Blob service endpoint for the storage account."""
        if self.storage_account_url:
            return self.storage_account_url.rstrip("/")
        return f"https://{self.storage_account_name}.blob.core.windows.net"

    def require_batch_credentials(self) -> None:
        """Fail fast when the batch account cannot be reached.

        Raises:
            ConfigurationError: If account name, key or endpoint is missing.
        """
        missing = [
            env
            for env, value in (
                ("BATCH_ACCOUNT_NAME", self.batch_account_name),
                ("BATCH_ACCOUNT_KEY", self.batch_account_key),
            )
            if not value
        ]
        if not self.batch_account_url and not self.batch_region:
            missing.append("BATCH_REGION")
        if missing:
            raise ConfigurationError(
                f"Missing batch account configuration: {', '.join(missing)}"
            )

    def require_storage_credentials(self) -> None:
        """Fail fast when the blob store cannot be reached.

        Raises:
            ConfigurationError: If the Azure storage account is not configured.
        """
        if self.storage_backend != "azure":
            return
        missing = []
        if not (self.storage_account_name or self.storage_account_url):
            missing.append("STORAGE_ACCOUNT_NAME")
        if not self.storage_account_key:
            missing.append("STORAGE_ACCOUNT_KEY")
        if missing:
            raise ConfigurationError(
                f"Missing storage account configuration: {', '.join(missing)}"
            )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
