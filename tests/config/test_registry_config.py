"""Configuration loading, validation and the kernel bridges."""

from pathlib import Path

import pytest
import yaml

from grants_config import (
    DATABASE_URL_ENV,
    ConfigValidationError,
    DatabaseConfig,
    RegistryConfig,
    get_active_config,
)
from grants_config.bridges import authority_gate_from_config, build_registry
from grants_config.loader import compute_checksum, load_yaml_file, parse_registry_config, validate_config
from grants_kernel.domain.milestones import MAX_TOKEN_AMOUNT
from grants_kernel.exceptions import AmountOverflowError
from grants_kernel.services.transfer_gateway import InMemoryTransferGateway


@pytest.fixture(autouse=True)
def _no_env_override(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


def _write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "registry.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


VALID = {
    "registry": {"name": "test-registry", "version": 3},
    "database": {"url": "sqlite:///grants.db", "echo": False, "pool_size": 5},
    "authorities": ["0xcommittee"],
    "max_token_amount": "2**128",
    "log_level": "debug",
}


class TestGetActiveConfig:

    def test_default_config_loads(self):
        config = get_active_config()

        assert isinstance(config, RegistryConfig)
        assert config.database.url == "sqlite:///grants.db"
        assert config.authorities == ("0xgrants-committee",)
        assert config.max_token_amount == MAX_TOKEN_AMOUNT
        assert config.log_level == "INFO"
        assert len(config.checksum) == 64

    def test_custom_file(self, tmp_path):
        config = get_active_config(_write_config(tmp_path, VALID))

        assert config.name == "test-registry"
        assert config.version == 3
        assert config.database == DatabaseConfig(url="sqlite:///grants.db", echo=False, pool_size=5)
        assert config.max_token_amount == 2**128
        assert config.log_level == "DEBUG"

    def test_environment_overrides_database_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql+psycopg2://grants@localhost/grants")
        config = get_active_config(_write_config(tmp_path, VALID))

        assert config.database.url == "postgresql+psycopg2://grants@localhost/grants"
        assert config.database.pool_size == 5

    def test_override_changes_checksum(self, tmp_path, monkeypatch):
        path = _write_config(tmp_path, VALID)
        plain = get_active_config(path).checksum
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:///other.db")

        assert get_active_config(path).checksum != plain

    def test_checksum_is_deterministic(self, tmp_path):
        path = _write_config(tmp_path, VALID)
        assert get_active_config(path).checksum == get_active_config(path).checksum
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_trace_is_logged(self, tmp_path, captured_logs):
        path = _write_config(tmp_path, VALID)
        config = get_active_config(path)

        traces = [r for r in captured_logs() if r["message"] == "GRANTS_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["config_path"] == str(path)
        assert traces[0]["logger"] == "grants_kernel.config"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text("database: [unclosed")
        with pytest.raises(yaml.YAMLError):
            get_active_config(path)


class TestValidation:

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"database": {"url": ""}}, "database.url"),
            ({"database": {"url": "sqlite://", "pool_size": 0}}, "database.pool_size"),
            ({"authorities": []}, "authorities"),
            ({"authorities": ["  "]}, "authorities"),
            ({"authorities": ["0x0"]}, "authorities"),
            ({"authorities": ["0xcommittee", "0x0000"]}, "zero address"),
            ({"max_token_amount": 0}, "max_token_amount"),
            ({"max_token_amount": "lots"}, "max_token_amount"),
            ({"log_level": "LOUD"}, "log_level"),
            ({"authorities": "0xcommittee"}, "authorities"),
            ({"database": "sqlite://"}, "database"),
        ],
    )
    def test_invalid_config_rejected(self, tmp_path, overrides, message):
        with pytest.raises(ConfigValidationError) as exc_info:
            get_active_config(_write_config(tmp_path, {**VALID, **overrides}))
        assert any(message in e for e in exc_info.value.errors)

    def test_unconvertible_value_rejected(self, tmp_path):
        data = {**VALID, "database": {"url": "sqlite://", "pool_size": "many"}}
        with pytest.raises(ConfigValidationError):
            get_active_config(_write_config(tmp_path, data))

    def test_every_problem_reported(self):
        config = RegistryConfig(
            database=DatabaseConfig(url=""),
            authorities=(),
            max_token_amount=-1,
        )
        assert len(validate_config(config)) == 3

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "registry.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigValidationError):
            load_yaml_file(path)

    def test_is_a_value_error(self):
        assert issubclass(ConfigValidationError, ValueError)

    def test_checksum_not_part_of_equality(self):
        a = parse_registry_config(VALID, checksum="a")
        b = parse_registry_config(VALID, checksum="b")
        assert a == b


class TestBridges:

    def test_authority_gate_from_config(self):
        gate = authority_gate_from_config(parse_registry_config(VALID))
        assert gate.is_authority("0xcommittee")
        assert not gate.is_authority("0xother")

    def test_build_registry_applies_limits(self, session_factory, deterministic_clock):
        config = parse_registry_config({**VALID, "max_token_amount": 100})
        registry = build_registry(
            config, InMemoryTransferGateway({"USDC": 100}), session_factory, deterministic_clock,
        )

        pid = registry.create_proposal("0xalice", "t", "d", "u", [60, 40], "0xr", "USDC")
        registry.accept_proposal("0xcommittee", pid)
        with pytest.raises(AmountOverflowError):
            registry.create_proposal("0xalice", "t", "d", "u", [60, 41], "0xr", "USDC")
