"""Position-risk analysis."""
from .management import (
    MAX_RATIO,
    RiskAnalysis,
    analyze_risk,
    consecutive_losses_to_breach,
    drawdown_estimate,
    kelly_percentage,
    level_probability,
    max_drawdown,
    position_size,
    risk_reward_ratio,
    stop_loss,
    take_profit_levels,
)
