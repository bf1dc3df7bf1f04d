"""Livebridge - CORS-normalizing relay for realtime WebSocket and API traffic."""

__version__ = "0.1.0"
