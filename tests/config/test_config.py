"""Tests for configuration loading (stock_config)."""

from decimal import Decimal

import pytest

from stock_config import get_config
from stock_config.loader import DATABASE_URL_ENV, load_yaml_file, merge, parse_config
from stock_config.schema import NumberingConfig
from stock_modules.transactions.models import DeliveryLineInput
from stock_modules.transactions.service import TransactionProcessor


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_config(environ={})

        assert config.database.url == "sqlite:///:memory:"
        assert config.database.pool_options == {
            "pool_size": 20, "max_overflow": 10, "pool_timeout": 30,
        }
        assert config.numbering.delivery_prefix == "DEL"
        assert config.numbering.padding == 3
        assert config.variance.tolerance_percent == Decimal("0")
        assert config.logging.level == "INFO"

    def test_load_is_logged(self, captured_logs):
        get_config(environ={})
        assert any(r["message"] == "stock_config_loaded" for r in captured_logs())


class TestOverrides:
    def test_override_file(self, tmp_path):
        override = tmp_path / "site.yaml"
        override.write_text(
            "numbering:\n"
            "  ncr_prefix: NC\n"
            "variance:\n"
            "  tolerance_percent: '2.5'\n"
        )

        config = get_config(override, environ={})

        assert config.numbering.ncr_prefix == "NC"
        assert config.numbering.delivery_prefix == "DEL"
        assert config.variance.tolerance_percent == Decimal("2.5")

    def test_environment_sets_database_url(self):
        url = "postgresql://stock:stock@db:5432/stock"
        config = get_config(environ={DATABASE_URL_ENV: url})
        assert config.database.url == url

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_config(tmp_path / "absent.yaml", environ={})

    def test_merge_is_recursive(self):
        merged = merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}}


class TestValidation:
    def test_unknown_section(self):
        with pytest.raises(ValueError, match="unknown configuration sections"):
            parse_config({"metrics": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="unknown keys"):
            parse_config({"numbering": {"delivery_prefx": "D"}})

    def test_padding_at_least_one(self):
        with pytest.raises(ValueError, match="padding"):
            parse_config({"numbering": {"padding": 0}})

    def test_negative_tolerance(self):
        with pytest.raises(ValueError, match="tolerance_percent"):
            parse_config({"variance": {"tolerance_percent": "-1"}})

    def test_float_tolerance_goes_through_str(self):
        config = parse_config({"variance": {"tolerance_percent": 0.1}})
        assert config.variance.tolerance_percent == Decimal("0.1")

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)


class TestNumberingApplied:
    def test_custom_prefix_and_padding(
        self, session, deterministic_clock, january, kitchen, flour, test_actor_id
    ):
        processor = TransactionProcessor(
            session,
            deterministic_clock,
            numbering=NumberingConfig(delivery_prefix="GRN", padding=4),
        )
        result = processor.post_delivery(
            kitchen.id, january.id, "Mill & Co",
            [DeliveryLineInput(flour.id, Decimal("1"), Decimal("1.50"))],
            test_actor_id,
        )
        assert result.delivery.delivery_no == "GRN-2024-0001"
