"""Ingestion layer.

This package contains adapters that turn data received from devices and
the broker into normalized presence events.
"""

__all__: list[str] = []
