"""Utility helpers for logging and request tracing."""
