"""HTTP surface for CoinGate payment notifications."""
