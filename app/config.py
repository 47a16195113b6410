import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base configuration class with common settings."""
    # Queue worker / retry policy (milliseconds)
    MAX_RETRIES = _env_int("MAX_RETRIES", 5)
    INITIAL_BACKOFF = _env_int("INITIAL_BACKOFF", 1000)
    MAX_BACKOFF = _env_int("MAX_BACKOFF", 60000)
    BACKOFF_MULTIPLIER = _env_float("BACKOFF_MULTIPLIER", 2)
    PROCESSING_INTERVAL = _env_int("PROCESSING_INTERVAL", 5000)
    WEBHOOK_PORT = _env_int("WEBHOOK_PORT", 3000)

    # Queue store
    QUEUE_BACKEND = os.environ.get("QUEUE_BACKEND", "redis").lower()
    REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

    # KeyCRM configuration
    KEYCRM_BASE_URL = os.environ.get("KEYCRM_BASE_URL", "https://openapi.keycrm.app/v1")
    KEYCRM_KEY = os.environ.get("KEYCRM_KEY")
    SOURCE_ID = _env_int("KEYCRM_SOURCE_ID", 2)
    PIPELINE_ID = _env_int("KEYCRM_PIPELINE_ID", 1)  # pipeline for leads
    SHIPPED_STATUS_ID = _env_int("KEYCRM_SHIPPED_STATUS_ID", 8)
    DELIVERED_STATUS_ID = _env_int("KEYCRM_DELIVERED_STATUS_ID", 9)
    CRM_TIMEOUT_SECONDS = _env_float("CRM_TIMEOUT_SECONDS", 30)

    # When true, a failed payment call after a created order sends the
    # whole order back through retry (which re-creates the order in CRM).
    PAYMENT_FAILURE_FAILS_DISPATCH = _env_bool("PAYMENT_FAILURE_FAILS_DISPATCH", False)

    # Order history read model
    HISTORY_MAX_ENTRIES = _env_int("HISTORY_MAX_ENTRIES", 50)

    # CORS configuration (operator dashboard reading /health, /dlq, /history)
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False


class TestingConfig(Config):
    """Configuration for the test suite: in-memory queue and database."""
    ENV = "testing"
    DEBUG = False
    TESTING = True
    QUEUE_BACKEND = "memory"
    KEYCRM_KEY = "test-token"
    LOG_FILE = None


def get_config():
    """Get the appropriate configuration class based on environment variable.

    Environment is determined by FLASK_ENV or ENVIRONMENT variable:
    - 'local' or 'development' -> LocalConfig
    - 'sandbox' or 'staging' -> SandboxConfig
    - 'production' or 'prod' -> ProductionConfig
    - 'test' or 'testing' -> TestingConfig

    Defaults to LocalConfig if not set.
    """
    env = (os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")).lower()

    if env in ["local", "development", "dev"]:
        return LocalConfig
    elif env in ["sandbox", "staging", "stage"]:
        return SandboxConfig
    elif env in ["production", "prod"]:
        return ProductionConfig
    elif env in ["test", "testing"]:
        return TestingConfig
    else:
        # Default to local for safety
        return LocalConfig
