"""Position-risk arithmetic for a single long entry.

All numbers are advisory. Ratios whose denominator is zero saturate at
``MAX_RATIO`` instead of raising or returning inf.
"""
import math
import sys
from dataclasses import asdict, dataclass
from typing import Dict, Sequence, Tuple

import numpy as np

from ..config import RiskConfig

# Maximum value to use instead of inf for JSON serialization
MAX_RATIO = 1e6


@dataclass(frozen=True)
class RiskAnalysis:
    """Risk numbers for one entry price."""

    entry_price: float
    stop_loss: float
    risk_per_unit: float
    take_profit_levels: Tuple[float, ...]
    risk_reward_ratios: Tuple[float, ...]
    level_probabilities: Tuple[float, ...]
    position_size: float
    kelly_percentage: float
    consecutive_losses_to_breach: int
    max_drawdown_estimate: float

    def to_dict(self) -> Dict:
        data = asdict(self)
        for key in ('take_profit_levels', 'risk_reward_ratios', 'level_probabilities'):
            data[key] = list(data[key])
        return data


def stop_loss(entry_price: float, pct: float = 0.05) -> float:
    """Stop price ``pct`` below entry."""
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if not 0 < pct < 1:
        raise ValueError(f"stop-loss pct must be in (0, 1), got {pct}")
    return entry_price * (1 - pct)


def take_profit_levels(entry_price: float, stop_price: float,
                       ratios: Sequence[float] = (1.0, 2.0, 3.0)) -> Tuple[float, ...]:
    """Targets at ``ratio`` multiples of the per-unit risk above entry."""
    risk = entry_price - stop_price
    return tuple(entry_price + risk * r for r in ratios)


def position_size(portfolio_value: float, risk_per_trade: float,
                  entry_price: float, stop_price: float) -> float:
    """Units to buy so that hitting the stop loses ``risk_per_trade`` of the portfolio.

    Raises:
        ValueError: If the stop equals the entry (no per-unit risk)
    """
    risk = entry_price - stop_price
    if risk == 0:
        raise ValueError("Stop price equals entry price; position size is undefined")
    return portfolio_value * risk_per_trade / risk


def risk_reward_ratio(entry_price: float, target_price: float, stop_price: float) -> float:
    """``|target - entry| / |entry - stop|``, saturating at MAX_RATIO for zero risk."""
    risk = abs(entry_price - stop_price)
    reward = abs(target_price - entry_price)
    if risk == 0:
        return MAX_RATIO
    return min(reward / risk, MAX_RATIO)


def kelly_percentage(win_rate: float, win_loss_ratio: float) -> float:
    """Kelly fraction ``win_rate - (1 - win_rate) / ratio``, floored at zero."""
    if not 0 <= win_rate <= 1:
        raise ValueError(f"win_rate must be in [0, 1], got {win_rate}")
    if win_loss_ratio <= 0:
        raise ValueError(f"win_loss_ratio must be positive, got {win_loss_ratio}")
    return max(0.0, win_rate - (1 - win_rate) / win_loss_ratio)


def consecutive_losses_to_breach(win_rate: float, threshold: float = 0.05) -> int:
    """Smallest k with ``(1 - win_rate) ** k <= threshold``.

    A run of k straight losses is then no more likely than ``threshold``.
    A zero win rate never gets there and saturates at ``sys.maxsize``.
    """
    if not 0 <= win_rate <= 1:
        raise ValueError(f"win_rate must be in [0, 1], got {win_rate}")
    if not 0 < threshold < 1:
        raise ValueError(f"threshold must be in (0, 1), got {threshold}")
    if win_rate == 1:
        return 0
    if win_rate == 0:
        return sys.maxsize
    return int(math.ceil(math.log(threshold) / math.log(1 - win_rate)))


def drawdown_estimate(risk_per_trade: float, consecutive_losses: int) -> float:
    """Portfolio fraction lost after ``consecutive_losses`` stopped-out trades."""
    return 1 - (1 - risk_per_trade) ** consecutive_losses


def level_probability(win_rate: float, ratio: float) -> float:
    return 1 - (1 - win_rate) ** ratio


def max_drawdown(values) -> float:
    """Largest peak-to-trough decline of an equity curve, as a fraction of the peak."""
    equity = np.asarray(values, dtype=float)
    if len(equity) == 0:
        return 0.0
    peak = np.maximum.accumulate(equity)
    with np.errstate(divide='ignore', invalid='ignore'):
        drawdown = np.where(peak > 0, (peak - equity) / peak, 0.0)
    return float(drawdown.max())


def analyze_risk(entry_price: float, config: RiskConfig = None) -> RiskAnalysis:
    """Stop, targets, sizing and drawdown estimates for a long entry.

    Kelly uses the mean of the configured reward ratios as the win/loss
    ratio.

    Args:
        entry_price: Planned entry price
        config: Risk parameters (defaults: 5% stop, 1/2/3R targets,
            10000 portfolio, 2% risk per trade, 50% win rate)

    Returns:
        RiskAnalysis snapshot
    """
    cfg = config or RiskConfig()
    stop = stop_loss(entry_price, cfg.stop_loss_pct)
    risk = entry_price - stop
    targets = take_profit_levels(entry_price, stop, cfg.reward_ratios)
    consecutive = consecutive_losses_to_breach(cfg.win_rate, cfg.drawdown_threshold)
    mean_ratio = float(np.mean(cfg.reward_ratios)) if cfg.reward_ratios else 1.0

    return RiskAnalysis(
        entry_price=float(entry_price),
        stop_loss=stop,
        risk_per_unit=risk,
        take_profit_levels=targets,
        risk_reward_ratios=tuple(risk_reward_ratio(entry_price, t, stop) for t in targets),
        level_probabilities=tuple(level_probability(cfg.win_rate, r) for r in cfg.reward_ratios),
        position_size=position_size(cfg.portfolio_value, cfg.risk_per_trade, entry_price, stop),
        kelly_percentage=kelly_percentage(cfg.win_rate, mean_ratio),
        consecutive_losses_to_breach=consecutive,
        max_drawdown_estimate=drawdown_estimate(cfg.risk_per_trade, consecutive),
    )
