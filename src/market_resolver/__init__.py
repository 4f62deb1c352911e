"""Market resolution runner: webhook ingress, resolution queue and oracle state machine."""

__version__ = "0.1.0"
