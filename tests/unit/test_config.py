from datetime import timedelta

import pytest

from table_river_sync.config import load_settings

_RIVER_ENV = (
    "RIVER_NAME",
    "RIVER_ROLE",
    "RIVER_POLLING_INTERVAL_SECONDS",
    "RIVER_DIGESTING",
    "RIVER_ACKNOWLEDGE",
    "RIVER_PHASE_FAILURE_POLICY",
    "RIVER_DEFAULT_INDEX",
    "RIVER_DEFAULT_TYPE",
    "PGHOST",
    "PGPORT",
    "PGWRITEHOST",
    "PGWRITEPORT",
    "PGWRITEUSER",
    "SINK_BASE_URL",
    "SINK_REFRESH",
)


@pytest.fixture(autouse=True)
def _patch_dotenv(monkeypatch):
    monkeypatch.setattr(
        "table_river_sync.config.load_dotenv", lambda *_args, **_kwargs: True
    )
    for name in _RIVER_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
def test_defaults() -> None:
    settings = load_settings()

    assert settings.river_name == "my_river"
    assert settings.role == "mouth"
    assert settings.polling_interval == timedelta(seconds=60)
    assert settings.digesting is True
    assert settings.acknowledge is False
    assert settings.phase_failure_policy == "fail_fast"
    assert settings.default_index == "my_river"
    assert settings.default_type is None
    assert settings.sink_base_url == "http://localhost:9200"


@pytest.mark.unit
def test_river_overrides(monkeypatch) -> None:
    monkeypatch.setenv("RIVER_NAME", "orders")
    monkeypatch.setenv("RIVER_ROLE", "TARGET")
    monkeypatch.setenv("RIVER_POLLING_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("RIVER_ACKNOWLEDGE", "yes")
    monkeypatch.setenv("RIVER_DIGESTING", "false")
    monkeypatch.setenv("RIVER_PHASE_FAILURE_POLICY", "Continue")
    monkeypatch.setenv("SINK_BASE_URL", "https://search.internal:9200/")

    settings = load_settings()

    assert settings.river_name == "orders"
    assert settings.role == "target"
    assert settings.polling_interval == timedelta(seconds=2.5)
    assert settings.acknowledge is True
    assert settings.digesting is False
    assert settings.phase_failure_policy == "continue"
    assert settings.default_index == "orders"
    assert settings.sink_base_url == "https://search.internal:9200"


@pytest.mark.unit
def test_invalid_role_and_policy_fall_back(monkeypatch) -> None:
    monkeypatch.setenv("RIVER_ROLE", "feeder")
    monkeypatch.setenv("RIVER_PHASE_FAILURE_POLICY", "retry")

    settings = load_settings()

    assert settings.role == "mouth"
    assert settings.phase_failure_policy == "fail_fast"


@pytest.mark.unit
def test_write_connection_defaults_to_read_connection(monkeypatch) -> None:
    monkeypatch.setenv("PGHOST", "db-read")
    monkeypatch.setenv("PGPORT", "6543")

    settings = load_settings()
    assert settings.db_write_host == "db-read"
    assert settings.db_write_port == 6543

    monkeypatch.setenv("PGWRITEHOST", "db-primary")
    monkeypatch.setenv("PGWRITEUSER", "writer")
    settings = load_settings()
    assert settings.db_write_host == "db-primary"
    assert settings.db_write_user == "writer"


@pytest.mark.unit
def test_non_positive_interval_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("RIVER_POLLING_INTERVAL_SECONDS", "0")
    with pytest.raises(ValueError):
        load_settings()


@pytest.mark.unit
def test_default_type_only_when_configured(monkeypatch) -> None:
    monkeypatch.setenv("RIVER_DEFAULT_TYPE", "")
    assert load_settings().default_type is None

    monkeypatch.setenv("RIVER_DEFAULT_TYPE", "book")
    assert load_settings().default_type == "book"
