"""Core services of the device backend."""
