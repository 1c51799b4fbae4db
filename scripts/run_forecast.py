#!/usr/bin/env python3
"""Run one forecasting pass for a trading pair and print a summary.

Usage:
    python scripts/run_forecast.py --config configs/default.yaml --symbol ETH/USDT

Set GLASSNODE_API_KEY (environment or .env) to include on-chain metrics.
"""
import argparse
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv  # noqa: E402

from augur.config import PipelineConfig  # noqa: E402
from augur.errors import PipelineError  # noqa: E402
from augur.ingest.providers import (  # noqa: E402
    CCXTPriceSource,
    FearGreedSource,
    GlassnodeSource,
    ProviderConfig,
    SimulatedReservesSource,
)
from augur.pipeline import ForecastPipeline  # noqa: E402

load_dotenv()

logger = logging.getLogger("augur.cli")


def build_pipeline(config: PipelineConfig, simulate_reserves: bool = True) -> ForecastPipeline:
    data = config.data
    api_key = data.resolve_glassnode_key()
    onchain = GlassnodeSource(ProviderConfig(api_key=api_key)) if api_key else None
    if onchain is None:
        logger.warning("GLASSNODE_API_KEY not set; on-chain metrics will be skipped")
    return ForecastPipeline(
        CCXTPriceSource(exchange=data.exchange),
        config,
        onchain_source=onchain,
        sentiment_source=FearGreedSource(),
        reserves_source=SimulatedReservesSource(seed=config.model.random_seed) if simulate_reserves else None,
    )


def main():
    parser = argparse.ArgumentParser(description="Forecast a crypto asset with an LSTM")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config")
    parser.add_argument("--symbol", type=str, default=None, help="Trading pair, e.g. BTC/USDT")
    parser.add_argument("--epochs", type=int, default=None, help="Override training epochs")
    parser.add_argument("--no-reserves", action="store_true", help="Do not add simulated exchange reserves")
    parser.add_argument("--output", type=str, default=None, help="Write the summary JSON here")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = PipelineConfig.from_yaml(args.config) if args.config else PipelineConfig()
    if args.symbol:
        config.data.symbol = args.symbol
    if args.epochs is not None:
        config.model.epochs = args.epochs

    try:
        result = build_pipeline(config, simulate_reserves=not args.no_reserves).run()
    except PipelineError as e:
        logger.error("Forecast failed: %s", e)
        return 1

    last = result.signals.timestamps[-1]
    summary = {
        "symbol": result.symbol,
        "features": list(result.feature_columns),
        "metrics": result.metrics.to_dict() if result.metrics else None,
        "forecast": {str(ts.date()): round(float(v), 2) for ts, v in result.forecast.to_series().items()},
        "as_of": str(last),
        "buy_signal": bool(result.signals.column("buy_signal")[-1]),
        "sell_signal": bool(result.signals.column("sell_signal")[-1]),
        "risk": result.risk.to_dict(),
        "backtest": result.backtest.stats if result.backtest else None,
        "skipped_sources": list(result.skipped_sources),
    }
    text = json.dumps(summary, indent=2, default=str)
    print(text)

    if args.output:
        Path(args.output).parent.mkdir(parents=True, exist_ok=True)
        Path(args.output).write_text(text)
        print(f"\nSummary saved to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
