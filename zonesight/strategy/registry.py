"""
Strategy registry.

Maps strategy names to policy factories built from settings.
"""
from typing import Callable, Dict, List, Optional

from zonesight.contracts.strategy_contract import StrategyPolicy
from zonesight.shared.config.defaults import Settings
from zonesight.shared.utils.error_policy import UnknownStrategyError
from zonesight.strategy.scalping import ScalpingPolicy
from zonesight.strategy.swing import SwingPolicy


PolicyFactory = Callable[[Settings], StrategyPolicy]

STRATEGIES: Dict[str, PolicyFactory] = {
    "swing": lambda settings: SwingPolicy(settings.swing, settings.zones),
    "scalping": lambda settings: ScalpingPolicy(settings.scalping, settings.zones),
}


def list_strategies() -> List[str]:
    return sorted(STRATEGIES)


def get_policy(name: str, settings: Optional[Settings] = None) -> StrategyPolicy:
    """Build a strategy policy by name (case-insensitive)."""
    key = (name or "").strip().lower()
    if key not in STRATEGIES:
        raise UnknownStrategyError(name, list_strategies())
    return STRATEGIES[key](settings or Settings())
