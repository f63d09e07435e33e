"""
Strategy policies.

Swing (Daily + 30 minute) and Scalping (15 + 5 minute) two-timeframe
strategies and the name -> policy registry.
"""

from zonesight.strategy.registry import get_policy, list_strategies
from zonesight.strategy.scalping import ScalpingPolicy
from zonesight.strategy.swing import SwingPolicy

__all__ = ["get_policy", "list_strategies", "ScalpingPolicy", "SwingPolicy"]
