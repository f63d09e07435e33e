"""ZoneSight - multi-timeframe supply/demand zone analyzer."""

__version__ = "0.1.0"
