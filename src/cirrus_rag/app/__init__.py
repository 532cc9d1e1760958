"""Application wiring: the composition root."""
