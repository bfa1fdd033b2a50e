"""
Centralized configuration for the sales reporting engine.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from sales_engine.config import config

    tz_name = config.reports.timezone
    rates = config.payroll.role_daily_rates
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass(frozen=True)
class ReportConfig:
    """Sales and profit reporting configuration."""

    timezone: str = field(
        default_factory=lambda: os.getenv("REPORT_TIMEZONE", "Asia/Colombo")
    )
    currency: str = field(default_factory=lambda: os.getenv("REPORT_CURRENCY", "LKR"))
    default_weeks: int = 8
    default_months: int = 6
    max_periods: int = 52

    # Labels shown next to every exported row
    filter_labels: Dict[str, str] = field(default_factory=lambda: {
        "all": "All payments",
        "online": "Online payments",
        "pay_later": "Pay at shop",
    })

    # Colors for the payment breakdown chart
    channel_colors: Dict[str, str] = field(default_factory=lambda: {
        "online": "#4f46e5",
        "pay_later": "#f97316",
    })

    def get_filter_label(self, sales_filter: str) -> str:
        """Get human-readable label for a payment filter."""
        return self.filter_labels.get(sales_filter, self.filter_labels["all"])


@dataclass(frozen=True)
class PayrollConfig:
    """Attendance-based payroll configuration."""

    workday_hours: float = 8.0
    overtime_multiplier_default: float = 1.5

    # Daily rate per role (LKR), divided by workday_hours for hourly rate
    role_daily_rates: Dict[str, float] = field(default_factory=lambda: {
        "admin": 12500,
        "supplier": 7500,
        "supplier manager": 7800,
        "customer care manager": 8200,
        "customer service": 6200,
        "technician": 6800,
        "accountant": 9400,
        "default": 6500,
    })

    # Fraction of a workday paid for each attendance status
    status_weights: Dict[str, float] = field(default_factory=lambda: {
        "present": 1.0,
        "late": 0.75,
        "leave": 0.5,
        "absent": 0.0,
    })

    # Roles that never show up in the payroll role selector
    excluded_role_keywords: Tuple[str, ...] = ("supplier",)
    excluded_roles: Tuple[str, ...] = ("user", "customer")

    def daily_rate_for(self, role: str) -> float:
        """Get daily rate for a role, falling back to the default rate."""
        role_key = str(role or "").strip().lower()
        return self.role_daily_rates.get(role_key) or self.role_daily_rates["default"]

    def hours_for(self, status: str) -> float:
        """Paid hours for one day with the given attendance status."""
        return self.workday_hours * self.status_weights.get(status, 0.0)


@dataclass(frozen=True)
class LiveConfig:
    """Live sale ingestion configuration."""

    event_history_size: int = 100
    websocket_room: str = "sales"
    default_currency: str = "lkr"


@dataclass(frozen=True)
class WebConfig:
    """Web API configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEB_PORT", "8080")))

    # Rate limiting
    rate_limit_per_minute: int = 30
    export_rate_limit_per_minute: int = 10

    # Request timeouts (seconds); exports and snapshots render or merge every row
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
    )
    bulk_request_timeout: float = field(
        default_factory=lambda: float(os.getenv("BULK_REQUEST_TIMEOUT_SECONDS", "120"))
    )


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    reports: ReportConfig = field(default_factory=ReportConfig)
    payroll: PayrollConfig = field(default_factory=PayrollConfig)
    live: LiveConfig = field(default_factory=LiveConfig)
    web: WebConfig = field(default_factory=WebConfig)


# Global config instance
config = AppConfig()


# ─── Convenience Exports ──────────────────────────────────────────────────────
VERSION = config.version
REPORT_TIMEZONE = config.reports.timezone
REPORT_CURRENCY = config.reports.currency
ROLE_DAILY_RATES = config.payroll.role_daily_rates
WORKDAY_HOURS = config.payroll.workday_hours
OVERTIME_MULTIPLIER_DEFAULT = config.payroll.overtime_multiplier_default


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config() -> None:
    """
    Validate configuration values.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    errors: List[str] = []

    try:
        ZoneInfo(config.reports.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"REPORT_TIMEZONE '{config.reports.timezone}' is not a known timezone")

    if config.payroll.workday_hours <= 0:
        errors.append("Payroll workday_hours must be positive")

    if "default" not in config.payroll.role_daily_rates:
        errors.append("Payroll role_daily_rates must define a 'default' rate")

    if config.reports.max_periods < 1:
        errors.append("Report max_periods must be at least 1")

    if config.web.request_timeout <= 0 or config.web.bulk_request_timeout <= 0:
        errors.append("Request timeouts must be positive")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
