"""
Configuration module for Mizan.

Contains constants, settings, and configuration values used throughout the application.
"""

import os
from pathlib import Path

# Version
VERSION = "0.1.0"

# Application paths
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("MIZAN_DATA_DIR", PROJECT_ROOT / "data"))
LOG_DIR = PROJECT_ROOT / "logs"

# Database configuration
DEFAULT_DB_PATH = Path(os.getenv("MIZAN_DB_PATH", DATA_DIR / "mizan.db"))
DB_TIMEOUT = 10.0  # seconds

# Preference store
DEFAULT_PREFERENCES_PATH = DATA_DIR / "preferences.json"
SELECTED_CURRENCY_KEY = "selectedCurrency"
BASE_CURRENCY_KEY = "base_currency"
FEATURE_FLAGS_KEY = "feature_flags"

# Owner used by the single-user app
DEFAULT_USER_ID = "default-user"

# Currency
CANONICAL_CURRENCY = "MAD"
CANONICAL_CURRENCY_DESCRIPTOR = {
    "code": "MAD",
    "symbol": "MAD ",
    "name": "Moroccan Dirham",
    "locale": "fr-FR",
}
CURRENCY_TABLES = ["accounts", "transactions", "budgets", "savings_goals", "debts"]

# Feature flags (defaults, overridable through the preference store)
DEFAULT_FEATURE_FLAGS = {
    "process_recurring_on_start": True,
    "debt_auto_pay": True,
    "enforce_canonical_currency": False,
}

# Scheduler
MAINTENANCE_INTERVAL_HOURS = 6.0

# Auto-pay
DEBT_PAYMENT_PREFIX = "Debt payment:"

# Validation constraints
MAX_ACCOUNT_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 200
MONEY_PRECISION = 2

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = "mizan.log"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def ensure_directories():
    """Ensure required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)


def get_log_level():
    """Get the configured log level."""
    import logging

    level_map = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return level_map.get(LOG_LEVEL.upper(), logging.INFO)
