import os


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///lema.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Language model
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

    # Billing (Lemon Squeezy)
    LEMON_SQUEEZY_API_KEY = os.environ.get("LEMON_SQUEEZY_API_KEY")
    LEMON_SQUEEZY_STORE_ID = os.environ.get("LEMON_SQUEEZY_STORE_ID")
    LEMON_SQUEEZY_WEBHOOK_SECRET = os.environ.get("LEMON_SQUEEZY_WEBHOOK_SECRET")
    LEMON_SQUEEZY_API_URL = os.environ.get("LEMON_SQUEEZY_API_URL", "https://api.lemonsqueezy.com/v1")
    BILLING_HTTP_TIMEOUT = int(os.environ.get("BILLING_HTTP_TIMEOUT", "30"))

    # Entitlements
    FREE_COURSE_LIMIT = int(os.environ.get("FREE_COURSE_LIMIT", "1"))

    SERVER_HOST = os.environ.get("SERVER_HOST", "127.0.0.1")
    SERVER_PORT = int(os.environ.get("SERVER_PORT", "5000"))
    USE_WAITRESS = _env_bool("USE_WAITRESS", False)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False
    SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
    USE_WAITRESS = _env_bool("USE_WAITRESS", True)
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = "test-secret"
    OPENAI_API_KEY = "test-openai-key"
    LEMON_SQUEEZY_API_KEY = "test-ls-key"
    LEMON_SQUEEZY_STORE_ID = "12345"
    LEMON_SQUEEZY_WEBHOOK_SECRET = "test-webhook-secret"
    FREE_COURSE_LIMIT = 1


_CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(name=None):
    name = (name or os.environ.get("APP_ENV") or "development").strip().lower()
    return _CONFIGS.get(name, DevelopmentConfig)
