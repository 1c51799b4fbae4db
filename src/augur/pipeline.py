"""End-to-end forecasting run for one asset.

One ``ForecastPipeline`` instance owns one run: its tables, scalers and
model are never shared. Collaborator clients are passed in by the caller.

Usage:
    pipeline = ForecastPipeline(CCXTPriceSource('binance'), PipelineConfig())
    result = pipeline.run()
    print(result.metrics.to_dict(), result.forecast.to_series())
"""
import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .backtest.runner import BacktestResult, run_backtest
from .config import PipelineConfig
from .core.table import ColumnKind, TimeSeriesTable
from .datasets.align import align
from .datasets.features import FeatureSpec, build_features, default_feature_columns, latest_feature_rows
from .datasets.scaling import MinMaxScaler
from .datasets.windows import make_windows, split_train_test
from .errors import DataUnavailableError, PipelineError
from .eval.metrics import EvaluationMetrics
from .indicators.fundamental import analyze_exchange_reserves
from .indicators.technical import PriceLevel, add_technical_indicators, support_resistance
from .ingest.providers.base import (
    OnChainMetricSource,
    PriceHistorySource,
    ReservesSource,
    SentimentSource,
)
from .predictors.lstm import EvaluationResult, ForecastResult, SequencePredictor, TrainingHistory
from .risk.management import RiskAnalysis, analyze_risk
from .signals.generator import generate_signals

logger = logging.getLogger(__name__)

SENTIMENT_COLUMN = 'fear_greed_index'
RESERVES_COLUMN = 'exchange_reserves'


@dataclass(frozen=True)
class CollectedData:
    """Raw tables from one collection round."""

    prices: TimeSeriesTable
    auxiliaries: Tuple[TimeSeriesTable, ...] = ()
    skipped: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PipelineResult:
    """Read-only snapshot of everything a run produced."""

    symbol: str
    combined: TimeSeriesTable
    feature_columns: Tuple[str, ...]
    history: TrainingHistory
    evaluation: Optional[EvaluationResult]
    forecast: ForecastResult
    signals: TimeSeriesTable
    risk: RiskAnalysis
    supports: Tuple[PriceLevel, ...] = ()
    resistances: Tuple[PriceLevel, ...] = ()
    backtest: Optional[BacktestResult] = None
    skipped_sources: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def metrics(self) -> Optional[EvaluationMetrics]:
        return self.evaluation.metrics if self.evaluation is not None else None


def _value_table(df: pd.DataFrame, column: str) -> TimeSeriesTable:
    frame = df[['timestamp', 'value']].rename(columns={'value': column})
    return TimeSeriesTable.from_frame(frame, kinds={column: ColumnKind.NUMERIC})


def _future_timestamps(index: pd.DatetimeIndex, steps: int) -> pd.DatetimeIndex:
    if len(index) < 2:
        step = pd.Timedelta(days=1)
    else:
        step = pd.Series(index).diff().dropna().median()
    return pd.DatetimeIndex([index[-1] + step * (k + 1) for k in range(steps)], name='timestamp')


def _frozen(values: np.ndarray) -> np.ndarray:
    values = np.array(values, dtype=float)
    values.flags.writeable = False
    return values


class ForecastPipeline:
    """collect -> indicators -> align -> features -> scale -> windows ->
    train -> evaluate -> forecast -> signals -> risk.

    Args:
        price_source: Required OHLCV source
        config: Run configuration
        onchain_source: Optional on-chain metric source; skipped without an API key
        sentiment_source: Optional fear & greed source
        reserves_source: Optional exchange-reserves source
        predictor: Optional pre-configured predictor (defaults from ``config.model``)
    """

    def __init__(
        self,
        price_source: PriceHistorySource,
        config: Optional[PipelineConfig] = None,
        onchain_source: Optional[OnChainMetricSource] = None,
        sentiment_source: Optional[SentimentSource] = None,
        reserves_source: Optional[ReservesSource] = None,
        predictor: Optional[SequencePredictor] = None,
    ):
        self.config = config or PipelineConfig()
        self.price_source = price_source
        self.onchain_source = onchain_source
        self.sentiment_source = sentiment_source
        self.reserves_source = reserves_source
        model_cfg = self.config.model
        self.predictor = predictor or SequencePredictor(
            units=model_cfg.units,
            dropout=model_cfg.dropout,
            random_seed=model_cfg.random_seed,
        )
        self.feature_scaler = MinMaxScaler(model_cfg.feature_range)
        self.target_scaler = MinMaxScaler(model_cfg.feature_range)

    @property
    def symbol(self) -> str:
        return self.config.data.symbol

    @contextmanager
    def _stage(self, name: str):
        try:
            yield
        except PipelineError as e:
            raise e.with_context(symbol=self.symbol, stage=name)

    # ------------------------------------------------------------------ collect

    def _onchain_available(self) -> bool:
        if self.onchain_source is None:
            return False
        if getattr(self.onchain_source, 'requires_api_key', False):
            key = getattr(getattr(self.onchain_source, 'config', None), 'api_key', None)
            if not (key or self.config.data.resolve_glassnode_key()):
                logger.warning("No on-chain API key configured; skipping on-chain metrics")
                return False
        return True

    async def collect(self) -> CollectedData:
        """Fetch prices and every configured auxiliary series concurrently.

        Raises:
            DataUnavailableError: If the price source fails or returns nothing
        """
        data_cfg = self.config.data
        jobs: List[Tuple[str, str, object]] = [
            ('prices', 'close', asyncio.to_thread(
                self.price_source.fetch, data_cfg.symbol, data_cfg.timeframe, data_cfg.limit)),
        ]
        skipped: List[str] = []

        if self._onchain_available():
            for metric in data_cfg.onchain_metrics:
                jobs.append((f'onchain:{metric}', metric, asyncio.to_thread(
                    self.onchain_source.fetch, data_cfg.onchain_asset, metric)))
        elif self.onchain_source is not None:
            skipped.extend(f'onchain:{m}' for m in data_cfg.onchain_metrics)
        if self.sentiment_source is not None:
            jobs.append(('sentiment', SENTIMENT_COLUMN, asyncio.to_thread(
                self.sentiment_source.fetch, data_cfg.sentiment_limit)))
        if self.reserves_source is not None:
            jobs.append(('reserves', RESERVES_COLUMN, asyncio.to_thread(
                self.reserves_source.fetch, data_cfg.onchain_asset, data_cfg.reserves_days)))

        results = await asyncio.gather(*(job for _, _, job in jobs), return_exceptions=True)

        prices = results[0]
        if isinstance(prices, Exception):
            raise DataUnavailableError(f"Price history fetch failed: {prices}",
                                       symbol=self.symbol, stage='collect') from prices
        if prices is None or len(prices) == 0:
            raise DataUnavailableError("Price source returned no data", symbol=self.symbol, stage='collect')
        with self._stage('collect'):
            price_table = TimeSeriesTable.from_ohlcv(prices)

        auxiliaries = []
        for (label, column, _), res in zip(jobs[1:], results[1:]):
            if isinstance(res, Exception):
                logger.warning("Auxiliary fetch %s failed for %s: %s", label, self.symbol, res)
                skipped.append(label)
                continue
            if res is None or len(res) == 0:
                logger.warning("Auxiliary source %s returned no data for %s", label, self.symbol)
                skipped.append(label)
                continue
            auxiliaries.append(_value_table(res, column))

        logger.info(
            "Collected %d candles for %s with %d auxiliary series (skipped: %s)",
            len(price_table), self.symbol, len(auxiliaries), skipped or 'none',
        )
        return CollectedData(prices=price_table, auxiliaries=tuple(auxiliaries), skipped=tuple(skipped))

    # ------------------------------------------------------------------ stages

    def combine(self, collected: CollectedData) -> TimeSeriesTable:
        """Indicators on the price table, then alignment with auxiliaries."""
        with self._stage('indicators'):
            enriched = add_technical_indicators(collected.prices, self.config.indicators)
        with self._stage('align'):
            return align(enriched, collected.auxiliaries)

    def feature_spec(self, combined: TimeSeriesTable) -> FeatureSpec:
        model_cfg = self.config.model
        features = list(model_cfg.features) if model_cfg.features else default_feature_columns(combined)
        return FeatureSpec(
            target=model_cfg.target,
            features=features,
            horizon=model_cfg.horizon,
            window_length=model_cfg.window_length,
        )

    def train(self, combined: TimeSeriesTable, spec: FeatureSpec) -> Tuple[TrainingHistory, Optional[EvaluationResult]]:
        """Scale, window, split chronologically, fit and evaluate.

        Scalers are fit on the rows the training windows cover, then applied
        to every row.
        """
        model_cfg = self.config.model
        with self._stage('features'):
            feature_set = build_features(combined, spec)

        n_windows = len(feature_set) - spec.window_length
        n_train = int(np.floor(model_cfg.train_ratio * max(n_windows, 0)))
        if n_train < 1:
            raise DataUnavailableError(
                f"{len(feature_set)} usable rows are too few for windows of {spec.window_length}",
                symbol=self.symbol, stage='windows',
            )
        fit_rows = n_train + spec.window_length

        with self._stage('scale'):
            self.feature_scaler.fit(feature_set.features[:fit_rows], columns=feature_set.columns)
            self.target_scaler.fit(feature_set.target[:fit_rows].reshape(-1, 1), columns=[spec.target_column])
            X = self.feature_scaler.transform(feature_set.features)
            y = self.target_scaler.transform(feature_set.target.reshape(-1, 1)).reshape(-1)

        with self._stage('windows'):
            train, test = split_train_test(make_windows(X, y, spec.window_length), model_cfg.train_ratio)
        logger.info("Windowed %s: %d train / %d test windows", self.symbol, len(train), len(test))

        with self._stage('train'):
            history = self.predictor.fit(
                train.X, train.y,
                epochs=model_cfg.epochs,
                batch_size=model_cfg.batch_size,
                validation_split=model_cfg.validation_split,
            )

        if len(test) == 0:
            logger.warning("No test windows for %s; skipping evaluation", self.symbol)
            return history, None
        with self._stage('evaluate'):
            return history, self.predictor.evaluate(test.X, test.y, self.target_scaler)

    def forecast(self, combined: TimeSeriesTable, spec: FeatureSpec) -> ForecastResult:
        steps = self.config.model.forecast_steps
        with self._stage('forecast'):
            window = self.feature_scaler.transform(latest_feature_rows(combined, spec))
            slot = spec.features.index(spec.target) if spec.target in spec.features else None
            result = self.predictor.forecast(
                window, steps,
                target_scaler=self.target_scaler,
                feature_scaler=self.feature_scaler,
                target_feature_index=slot,
            )
        return ForecastResult(values=_frozen(result.values),
                              timestamps=_future_timestamps(combined.timestamps, steps))

    # ------------------------------------------------------------------ run

    def run(self, collected: Optional[CollectedData] = None) -> PipelineResult:
        """Execute a full run; ``collected`` skips the fetch step when given."""
        if collected is None:
            collected = asyncio.run(self.collect())

        combined = self.combine(collected)
        spec = self.feature_spec(combined)
        logger.info("Features for %s: %s -> %s (+%d)", self.symbol, spec.features, spec.target, spec.horizon)

        history, evaluation = self.train(combined, spec)
        forecast = self.forecast(combined, spec)

        with self._stage('signals'):
            signals = generate_signals(combined, self.config.signals)
            supports, resistances = support_resistance(
                combined, self.config.indicators.support_resistance_window)
        if RESERVES_COLUMN in combined:
            reserves = analyze_exchange_reserves(combined)
            signals = signals.with_columns(
                {'accumulation_signal': reserves.column('accumulation_signal')},
                kinds={'accumulation_signal': ColumnKind.BOOLEAN},
            )

        entry_price = float(combined.numeric('close')[-1])
        with self._stage('risk'):
            try:
                risk = analyze_risk(entry_price, self.config.risk)
            except ValueError as e:
                raise PipelineError(str(e)) from e

        backtest = None
        if self.config.backtest_strategy:
            with self._stage('backtest'):
                backtest = run_backtest(
                    combined.with_columns({
                        'buy_signal': signals.column('buy_signal'),
                        'sell_signal': signals.column('sell_signal'),
                    }, kinds={'buy_signal': ColumnKind.BOOLEAN, 'sell_signal': ColumnKind.BOOLEAN}),
                    strategy=self.config.backtest_strategy,
                    initial_balance=self.config.backtest_initial_balance,
                )

        return PipelineResult(
            symbol=self.symbol,
            combined=combined,
            feature_columns=tuple(spec.features),
            history=history,
            evaluation=evaluation,
            forecast=forecast,
            signals=signals,
            risk=risk,
            supports=tuple(supports),
            resistances=tuple(resistances),
            backtest=backtest,
            skipped_sources=collected.skipped,
        )
