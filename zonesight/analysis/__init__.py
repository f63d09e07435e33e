"""Local analysis: OHLCV digest and heuristic fallback."""
