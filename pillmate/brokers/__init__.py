"""Brokers package initialization."""
