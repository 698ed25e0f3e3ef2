"""Settings loading, environment overrides and the config-to-kernel bridge."""

from datetime import date
from uuid import uuid4

import pytest
import yaml

from jobwork_config import get_active_config
from jobwork_config.bridges import build_stock_ledger
from jobwork_config.loader import apply_env_overrides, compute_checksum, parse_settings
from jobwork_kernel.db.engine import is_postgres, reset_engine


def _write(tmp_path, data, name="settings.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultConfig:
    def test_shipped_defaults(self):
        settings = get_active_config(environ={})
        assert settings.config_id == "jobwork-default"
        assert settings.database.url.startswith("sqlite")
        assert settings.database.lock_timeout_ms == 5000
        assert settings.transactions.max_attempts == 3
        assert settings.logging.level == "INFO"
        assert len(settings.checksum) == 64

    def test_trace_logged(self, captured_logs):
        settings = get_active_config(environ={})
        traces = [r for r in captured_logs() if r["message"] == "JOBWORK_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["checksum"] == settings.checksum
        assert traces[0]["config_id"] == "jobwork-default"


class TestOverrides:
    def test_env_overrides_file(self, tmp_path):
        path = _write(tmp_path, {"database": {"url": "sqlite:///a.db"}})
        settings = get_active_config(
            path,
            environ={
                "JOBWORK_DATABASE_URL": "postgresql://u:p@db/jobwork",
                "JOBWORK_LOCK_TIMEOUT_MS": "1500",
                "JOBWORK_MAX_ATTEMPTS": "5",
                "JOBWORK_DB_ECHO": "yes",
                "JOBWORK_LOG_LEVEL": "debug",
            },
        )
        assert settings.database.url == "postgresql://u:p@db/jobwork"
        assert settings.database.lock_timeout_ms == 1500
        assert settings.database.echo is True
        assert settings.transactions.max_attempts == 5
        assert settings.logging.level == "DEBUG"

    def test_empty_variable_ignored(self):
        data = apply_env_overrides({"database": {"url": "sqlite://"}}, {"JOBWORK_DATABASE_URL": ""})
        assert data["database"]["url"] == "sqlite://"

    def test_overrides_do_not_mutate_input(self):
        data = {"database": {"url": "sqlite://"}}
        apply_env_overrides(data, {"JOBWORK_DATABASE_URL": "sqlite:///other.db"})
        assert data["database"]["url"] == "sqlite://"

    @pytest.mark.parametrize(
        "name,value",
        [("JOBWORK_MAX_ATTEMPTS", "three"), ("JOBWORK_DB_ECHO", "sometimes")],
    )
    def test_malformed_variable(self, name, value):
        with pytest.raises(ValueError) as exc_info:
            apply_env_overrides({}, {name: value})
        assert name in str(exc_info.value)


class TestValidation:
    def test_url_required(self):
        with pytest.raises(ValueError, match="database.url"):
            parse_settings({"database": {}})

    def test_attempts_at_least_one(self):
        with pytest.raises(ValueError, match="max_attempts"):
            parse_settings({"database": {"url": "sqlite://"}, "transactions": {"max_attempts": 0}})

    def test_unknown_log_level(self):
        with pytest.raises(ValueError, match="log level"):
            parse_settings({"database": {"url": "sqlite://"}, "logging": {"level": "CHATTY"}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ValueError):
            parse_settings({"database": "sqlite://"})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml", environ={})

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestBridge:
    def test_build_stock_ledger(self, tmp_path, deterministic_clock):
        path = _write(
            tmp_path,
            {
                "config_id": "bridge-test",
                "database": {"url": f"sqlite:///{tmp_path / 'bridge.db'}", "lock_timeout_ms": 2000},
                "transactions": {"max_attempts": 4, "retry_backoff_seconds": 0},
            },
        )
        settings = get_active_config(path, environ={})
        try:
            ledger = build_stock_ledger(
                settings, clock=deterministic_clock, create_schema=True, configure_logs=False
            )
            assert not is_postgres()
            assert ledger.unit_of_work.max_attempts == 4
            assert ledger.clock is deterministic_clock

            tenant, actor = uuid4(), uuid4()
            product = ledger.register_product(tenant, "Kurta", actor)
            ledger.receive_batch(
                tenant, None, [{"product_id": product.id, "quantity": 3}],
                {"challan_no": "VC-1", "challan_date": date(2024, 1, 1)}, actor,
            )
            [row] = ledger.get_product_stock_summary(tenant)
            assert row.total_available_stock == 3
        finally:
            reset_engine()
