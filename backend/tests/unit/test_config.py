"""
Unit Tests: Settings and YAML overlay
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from draftboard.config import Settings
from draftboard.services.processor import ProcessorConfig


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.fees.rate == Decimal("0.05")
    assert settings.fees.minimum == Decimal("0.50")
    assert settings.funding.session_ttl_minutes == 60
    assert settings.credit.minimum_redemption == Decimal("10.00")


def test_yaml_overlay(tmp_path):
    (tmp_path / "config.yaml").write_text(
        "fees:\n  rate: '0.08'\npayouts:\n  refresh_batch_size: 5\n"
    )
    settings = Settings(_env_file=None, data_dir=tmp_path)
    settings.load_yaml_config()

    assert settings.fees.rate == Decimal("0.08")
    assert settings.fees.minimum == Decimal("0.50")
    assert settings.payouts.refresh_batch_size == 5


def test_missing_yaml_keeps_defaults(tmp_path):
    settings = Settings(_env_file=None, data_dir=tmp_path)
    settings.load_yaml_config()
    assert settings.fees.rate == Decimal("0.05")


def test_cors_origins_split():
    settings = Settings(_env_file=None, allowed_origins="http://a.test, http://b.test,")
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_processor_sandbox_without_key():
    assert ProcessorConfig().sandbox
    assert not ProcessorConfig(secret_key="sk_live_x").sandbox
    assert ProcessorConfig(secret_key="sk_live_x", force_sandbox=True).sandbox


def test_production_requires_processor_key():
    with pytest.raises(ValidationError, match="PROCESSOR__SECRET_KEY"):
        Settings(_env_file=None, environment="production")

    live = Settings(_env_file=None, environment="production", processor={"secret_key": "sk_live_x"})
    assert not live.processor.sandbox

    forced = Settings(_env_file=None, environment="staging", processor={"force_sandbox": True})
    assert forced.processor.sandbox


def test_yaml_cannot_drop_production_key(tmp_path):
    (tmp_path / "config.yaml").write_text("processor:\n  secret_key: ''\n")
    settings = Settings(
        _env_file=None,
        data_dir=tmp_path,
        environment="production",
        processor={"secret_key": "sk_live_x"},
    )
    with pytest.raises(ValueError, match="PROCESSOR__SECRET_KEY"):
        settings.load_yaml_config()
