"""Fleet management backend: sync engine for smart-device fleets."""

__version__ = "1.0.0"
