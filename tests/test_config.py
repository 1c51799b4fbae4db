"""Tests for configuration loading and the error context."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import yaml

from augur.config import DataConfig, PipelineConfig
from augur.errors import DataUnavailableError, PipelineError

CONFIG_DIR = Path(__file__).parent.parent / "configs"


class TestPipelineConfig:
    def test_defaults(self):
        config = PipelineConfig()
        assert config.data.symbol == 'BTC/USDT'
        assert config.indicators.ma_windows == [50, 200]
        assert config.model.window_length == 60
        assert config.model.horizon == 30
        assert config.signals.consensus == 0.5
        assert config.risk.reward_ratios == [1.0, 2.0, 3.0]

    def test_default_yaml_matches_defaults(self):
        config = PipelineConfig.from_yaml(str(CONFIG_DIR / "default.yaml"))
        assert config == PipelineConfig()

    def test_yaml_roundtrip(self, tmp_path):
        config = PipelineConfig()
        config.model.epochs = 3
        config.model.feature_range = (-1.0, 1.0)
        config.signals.rsi_oversold = 25.0
        path = tmp_path / "nested" / "config.yaml"
        config.save_yaml(str(path))

        loaded = PipelineConfig.from_yaml(str(path))
        assert loaded.model.epochs == 3
        assert loaded.model.feature_range == (-1.0, 1.0)
        assert loaded.signals.rsi_oversold == 25.0

    def test_api_key_not_saved(self, tmp_path):
        config = PipelineConfig()
        config.data.glassnode_api_key = "secret"
        path = tmp_path / "config.yaml"
        config.save_yaml(str(path))
        assert "secret" not in path.read_text()
        assert 'glassnode_api_key' not in yaml.safe_load(path.read_text())['data']

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text("data:\n  symbol: ETH/USDT\nbacktest_strategy: rsi_oversold\n")
        config = PipelineConfig.from_yaml(str(path))
        assert config.data.symbol == 'ETH/USDT'
        assert config.data.exchange == 'binance'
        assert config.backtest_strategy == 'rsi_oversold'


class TestGlassnodeKey:
    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv('GLASSNODE_API_KEY', 'from-env')
        assert DataConfig().resolve_glassnode_key() == 'from-env'

    def test_explicit_wins(self, monkeypatch):
        monkeypatch.setenv('GLASSNODE_API_KEY', 'from-env')
        assert DataConfig(glassnode_api_key='explicit').resolve_glassnode_key() == 'explicit'

    def test_missing(self, monkeypatch):
        monkeypatch.delenv('GLASSNODE_API_KEY', raising=False)
        assert DataConfig().resolve_glassnode_key() is None


class TestErrors:
    def test_message_carries_context(self):
        error = DataUnavailableError("no candles", symbol="BTC/USDT", stage="collect")
        assert str(error) == "no candles [symbol=BTC/USDT, stage=collect]"
        assert isinstance(error, PipelineError)

    def test_with_context_keeps_existing(self):
        error = PipelineError("boom", stage="train").with_context(symbol="ETH/USDT", stage="collect")
        assert error.symbol == "ETH/USDT"
        assert error.stage == "train"

    def test_plain_message(self):
        assert str(PipelineError("boom")) == "boom"
