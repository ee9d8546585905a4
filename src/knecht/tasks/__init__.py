"""Task models and the scheduling engine."""
