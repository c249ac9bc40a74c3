"""CoinGate checkout webhook verification and reconciliation."""

__version__ = "0.1.0"
