"""Sovereign Stack dashboard client.

Streams chat replies and model downloads from a personal server's
dashboard API, and polls its service/resource status.
"""

__version__ = "0.1.0"
