from dataclasses import replace

from medstock.app.config import get_settings
from medstock.app.utils.logging import resolve_level


def test_test_environment_settings():
    settings = get_settings()

    assert settings.env == "test"
    assert settings.bcrypt_rounds == 4
    assert settings.openfda_enabled is False
    assert settings.jwt_expire_minutes == 24 * 60


def test_log_level_follows_env_unless_overridden():
    settings = get_settings()

    assert resolve_level(replace(settings, env="production", log_level="")) == "INFO"
    assert resolve_level(replace(settings, env="development", log_level="")) == "DEBUG"
    assert resolve_level(replace(settings, env="qa", log_level="")) == "INFO"
    assert resolve_level(replace(settings, env="production", log_level="debug")) == "DEBUG"
