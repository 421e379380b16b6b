"""Losses, training loops and the pipeline actions."""
