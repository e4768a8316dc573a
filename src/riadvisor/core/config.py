"""Configuration management for riadvisor"""

import json
from pathlib import Path
from typing import Dict, Any, Optional, List
from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml
import logging

logger = logging.getLogger(__name__)


class AWSConfig(BaseModel):
    """AWS access configuration"""
    profile: Optional[str] = None
    regions: List[str] = Field(default_factory=list)  # empty = every enabled region
    assume_role_arn: Optional[str] = None  # default role for accounts without one, may use {account_id}
    external_id: Optional[str] = None
    default_region: str = "us-east-1"
    pricing_region: str = "us-east-1"
    max_workers: int = Field(default=8, ge=1)
    timeout: int = Field(default=120, ge=1)
    strict_regions: bool = False


class AccountConfig(BaseModel):
    """A customer AWS account to report on"""
    account_id: str
    name: str = ""
    role_arn: Optional[str] = None
    external_id: Optional[str] = None
    regions: List[str] = Field(default_factory=list)

    @field_validator("account_id")
    @classmethod
    def validate_account_id(cls, value: str) -> str:
        if len(value) != 12 or not value.isdigit():
            raise ValueError(f"invalid account format : {value}")
        return value


class ReportPolicyConfig(BaseModel):
    """Thresholds and sizes used when building a report"""
    cpu_average_threshold: float = Field(default=10.0, ge=0, le=100)
    cpu_peak_threshold: float = Field(default=60.0, ge=0, le=100)
    top_low_used: int = Field(default=5, ge=1)
    top_suggestions: int = Field(default=7, ge=1)
    top_buckets: int = Field(default=5, ge=1)
    top_applications: int = Field(default=7, ge=1)
    histogram_buckets: int = Field(default=5, ge=1)
    expiration_months_ahead: int = Field(default=2, ge=1)
    cadence: str = Field(default="weekly", pattern="^(weekly|monthly)$")
    on_fetch_error: str = Field(default="abort", pattern="^(abort|empty)$")


class PricingProfileConfig(BaseModel):
    """The single reserved-instance pricing profile used for conversion estimates"""
    service_code: str = "AmazonEC2"
    location: str = "US East (N. Virginia)"
    operating_system: str = "Linux"
    tenancy: str = "Shared"
    pre_installed_sw: str = "NA"
    purchase_option: str = "All Upfront"
    offering_class: str = "standard"
    lease_contract_length: str = "1yr"
    currency: str = "USD"
    page_size: int = Field(default=100, ge=1, le=100)


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5
    console: bool = True
    structured: bool = False


class MonitoringConfig(BaseModel):
    """Telemetry configuration"""
    enabled: bool = True
    metrics_namespace: str = "riadvisor."
    datadog_enabled: bool = False
    datadog_api_key: Optional[SecretStr] = None
    datadog_site: str = "datadoghq.com"
    datadog_timeout: float = 10.0


class ReportingConfig(BaseModel):
    """Report export configuration"""
    output_dir: Path = Path("./reports")
    formats: List[str] = Field(default_factory=lambda: ["json", "csv"])

    @field_validator("formats")
    @classmethod
    def validate_formats(cls, formats: List[str]) -> List[str]:
        unknown = [f for f in formats if f not in ("json", "csv")]
        if unknown:
            raise ValueError(f"Unsupported report formats: {', '.join(unknown)}")
        return formats


class SchedulerConfig(BaseModel):
    """Periodic job configuration (intervals in seconds)"""
    tick_seconds: float = Field(default=30.0, gt=0)
    weekly_report_interval: int = 7 * 24 * 3600
    monthly_report_interval: int = 24 * 3600
    refresh_pricing_interval: int = 6 * 3600
    max_account_workers: int = Field(default=4, ge=1)


class Settings(BaseSettings):
    """Main application settings"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RIADVISOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    app_name: str = "riadvisor"
    version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False

    aws: AWSConfig = Field(default_factory=AWSConfig)
    accounts: List[AccountConfig] = Field(default_factory=list)

    report: ReportPolicyConfig = Field(default_factory=ReportPolicyConfig)
    pricing: PricingProfileConfig = Field(default_factory=PricingProfileConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file"""
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls(**data if data else {})

    @classmethod
    def from_json(cls, path: Path) -> "Settings":
        """Load settings from JSON file"""
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()

        with open(path, 'r') as f:
            data = json.load(f)

        return cls(**data)

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a YAML or JSON file, based on its suffix"""
        path = Path(path)
        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        return cls.from_json(path)

    def to_yaml(self, path: Path) -> None:
        """Save settings to YAML file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json", exclude_unset=True), f, default_flow_style=False)

    def get_account(self, account_id: str) -> Optional[AccountConfig]:
        """Find a configured account by id"""
        for account in self.accounts:
            if account.account_id == account_id:
                return account
        return None


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance"""
    global settings
    if settings is None:
        config_paths = [
            Path.home() / ".riadvisor" / "config.yaml",
            Path.home() / ".riadvisor" / "config.json",
            Path("./config.yaml"),
            Path("./config.json"),
        ]

        for path in config_paths:
            if path.exists():
                settings = Settings.from_file(path)
                logger.info(f"Loaded configuration from {path}")
                break
        else:
            settings = Settings()
            logger.info("Using default configuration")

    return settings


def reload_settings(path: Optional[Path] = None) -> Settings:
    """Reload settings from file"""
    global settings

    if path:
        settings = Settings.from_file(Path(path))
    else:
        settings = None
        settings = get_settings()

    return settings
