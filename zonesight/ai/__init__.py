"""AI provider adapters and the reply schema."""
