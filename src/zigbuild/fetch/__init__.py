"""Release archive retrieval."""

from __future__ import annotations

from .http import ClientFactory, default_client, open_stream

__all__ = ["ClientFactory", "default_client", "open_stream"]
