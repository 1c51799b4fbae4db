"""Pipeline configuration."""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional, Tuple

import yaml


@dataclass
class IndicatorConfig:
    """Technical indicator parameters."""

    ma_windows: List[int] = field(default_factory=lambda: [50, 200])
    rsi_period: int = 14
    bb_window: int = 20
    bb_num_std: float = 2.0
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    support_resistance_window: int = 10


@dataclass
class SignalThresholds:
    """Fixed thresholds for the individual signals."""

    short_ma: str = 'MA_50'
    long_ma: str = 'MA_200'
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    extreme_fear: float = 20.0
    extreme_greed: float = 80.0
    mvrv_buy: float = 0.0
    mvrv_sell: float = 7.0
    nupl_opportunity: float = 0.25
    nupl_euphoria: float = 0.75
    consensus: float = 0.5


@dataclass
class ModelConfig:
    """Sequence model and dataset settings."""

    target: str = 'close'
    # None means: close, volume, RSI, MACD plus whichever auxiliaries are present
    features: Optional[List[str]] = None
    window_length: int = 60
    horizon: int = 30
    forecast_steps: int = 30
    train_ratio: float = 0.8
    units: int = 50
    dropout: float = 0.2
    epochs: int = 50
    batch_size: int = 32
    validation_split: float = 0.2
    feature_range: Tuple[float, float] = (0.0, 1.0)
    random_seed: int = 1337


@dataclass
class RiskConfig:
    """Position-risk parameters."""

    stop_loss_pct: float = 0.05
    reward_ratios: List[float] = field(default_factory=lambda: [1.0, 2.0, 3.0])
    portfolio_value: float = 10000.0
    risk_per_trade: float = 0.02
    win_rate: float = 0.5
    drawdown_threshold: float = 0.05


@dataclass
class DataConfig:
    """Which data to collect."""

    symbol: str = 'BTC/USDT'
    timeframe: str = '1d'
    limit: int = 1000
    exchange: str = 'binance'
    onchain_asset: str = 'BTC'
    onchain_metrics: List[str] = field(default_factory=lambda: ['mvrv_z_score', 'nupl'])
    sentiment_limit: int = 365
    reserves_days: int = 365
    glassnode_api_key: Optional[str] = None

    def resolve_glassnode_key(self) -> Optional[str]:
        """Explicit key first, then the GLASSNODE_API_KEY environment variable."""
        return self.glassnode_api_key or os.getenv('GLASSNODE_API_KEY') or None


@dataclass
class PipelineConfig:
    """Master configuration for one pipeline run."""

    data: DataConfig = field(default_factory=DataConfig)
    indicators: IndicatorConfig = field(default_factory=IndicatorConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    signals: SignalThresholds = field(default_factory=SignalThresholds)
    risk: RiskConfig = field(default_factory=RiskConfig)

    backtest_strategy: str = 'composite'
    backtest_initial_balance: float = 10000.0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        data = asdict(self)
        data['model']['feature_range'] = list(self.model.feature_range)
        # never write credentials back to disk
        data['data'].pop('glassnode_api_key', None)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'PipelineConfig':
        data = dict(data or {})
        model = dict(data.pop('model', {}) or {})
        if 'feature_range' in model:
            model['feature_range'] = tuple(model['feature_range'])
        return cls(
            data=DataConfig(**(data.pop('data', {}) or {})),
            indicators=IndicatorConfig(**(data.pop('indicators', {}) or {})),
            model=ModelConfig(**model),
            signals=SignalThresholds(**(data.pop('signals', {}) or {})),
            risk=RiskConfig(**(data.pop('risk', {}) or {})),
            **data,
        )

    @classmethod
    def from_yaml(cls, path: str) -> 'PipelineConfig':
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def save_yaml(self, path: str) -> None:
        """Save configuration to YAML file."""
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)
