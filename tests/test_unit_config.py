"""Unit tests for settings parsing and production guards."""

import pytest
from pydantic import ValidationError

from schema_engine.core.config import AppEnvironment, Settings


def _make_settings(**overrides) -> Settings:
    values = {"app_env": "local", "database_url": "sqlite+aiosqlite://"}
    values.update(overrides)
    return Settings(**values)


def test_plain_sqlite_url_gets_async_driver() -> None:
    settings = _make_settings(database_url="sqlite:///./data/fields.db")

    assert settings.database_url == "sqlite+aiosqlite:///./data/fields.db"
    assert settings.is_sqlite is True


def test_plain_postgres_url_gets_psycopg_driver() -> None:
    settings = _make_settings(database_url="postgresql://u:p@db:5432/fields")

    assert settings.database_url == "postgresql+psycopg://u:p@db:5432/fields"
    assert settings.is_sqlite is False


def test_explicit_driver_is_kept() -> None:
    url = "postgresql+psycopg://u:p@db:5432/fields"
    assert _make_settings(database_url=url).database_url == url


def test_app_env_is_case_insensitive() -> None:
    assert _make_settings(app_env="TEST").app_env == AppEnvironment.TEST


def test_unknown_app_env_is_rejected() -> None:
    with pytest.raises(ValidationError, match="app_env must be one of"):
        _make_settings(app_env="staging")


def test_default_entity_types_are_trimmed_and_deduplicated() -> None:
    settings = _make_settings(default_entity_types=" Customer, Job ,,Customer,Site ")
    assert settings.default_entity_types_list == ["Customer", "Job", "Site"]


def test_empty_entity_type_list_is_rejected() -> None:
    with pytest.raises(ValidationError, match="DEFAULT_ENTITY_TYPES"):
        _make_settings(default_entity_types=" , ")


def test_cors_origins_list() -> None:
    settings = _make_settings(cors_origins="https://a.example, https://b.example,")
    assert settings.cors_origins_list == ["https://a.example", "https://b.example"]


class TestProductionGuards:
    def test_sqlite_is_rejected_in_prod(self) -> None:
        with pytest.raises(ValidationError, match="PostgreSQL"):
            _make_settings(app_env="prod", cors_origins="https://fields.example")

    def test_localhost_cors_is_rejected_in_prod(self) -> None:
        with pytest.raises(ValidationError, match="localhost"):
            _make_settings(
                app_env="prod",
                database_url="postgresql://u:p@db:5432/fields",
                cors_origins="http://localhost:3000",
            )

    def test_valid_prod_settings(self) -> None:
        settings = _make_settings(
            app_env="prod",
            database_url="postgresql://u:p@db:5432/fields",
            cors_origins="https://fields.example",
        )
        assert settings.app_env == AppEnvironment.PROD
