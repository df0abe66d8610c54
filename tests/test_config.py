"""环境变量配置。"""

from datetime import time

import pytest

from sysplan.core import config


class TestConfig:
    def test_defaults(self) -> None:
        assert config.get_db_path() == "data/plans.db"
        assert config.get_cutoff_time() == time(15, 0)
        assert config.get_max_retries() == 3
        assert config.get_timezone() == "Asia/Kolkata"
        assert config.GatewayConfig.get_url() is None
        assert config.GatewayConfig.get_success_rate() == 0.8
        assert config.GatewayConfig.get_seed() is None

    def test_store_backend(self, monkeypatch) -> None:
        monkeypatch.setenv("SYSPLAN_STORE", " Memory ")
        assert config.get_store_backend() == "memory"
        monkeypatch.setenv("SYSPLAN_STORE", "redis")
        with pytest.raises(ValueError, match="SYSPLAN_STORE"):
            config.get_store_backend()

    def test_cutoff_override(self, monkeypatch) -> None:
        monkeypatch.setenv("SYSPLAN_CUTOFF_TIME", "14:30")
        assert config.get_cutoff_time() == time(14, 30)

    @pytest.mark.parametrize("raw", ["0", "abc"])
    def test_invalid_max_retries(self, monkeypatch, raw: str) -> None:
        monkeypatch.setenv("SYSPLAN_MAX_RETRIES", raw)
        with pytest.raises(ValueError, match="SYSPLAN_MAX_RETRIES"):
            config.get_max_retries()

    def test_gateway_settings(self, monkeypatch) -> None:
        monkeypatch.setenv("SYSPLAN_GATEWAY_URL", "http://orders.local/")
        monkeypatch.setenv("SYSPLAN_GATEWAY_TIMEOUT", "2.5")
        monkeypatch.setenv("SYSPLAN_GATEWAY_SEED", "7")
        assert config.GatewayConfig.get_url() == "http://orders.local"
        assert config.GatewayConfig.get_timeout() == 2.5
        assert config.GatewayConfig.get_seed() == 7

    def test_success_rate_out_of_range(self, monkeypatch) -> None:
        monkeypatch.setenv("SYSPLAN_GATEWAY_SUCCESS_RATE", "1.2")
        with pytest.raises(ValueError):
            config.GatewayConfig.get_success_rate()
