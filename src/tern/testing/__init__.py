"""Test utilities for tern routers.

Provides in-memory stand-ins for the collaborators a router talks to::

    from tern.testing import MemoryHistory, RecordingCacheBridge
"""

from tern.testing.bridge import RecordingCacheBridge
from tern.testing.history import MemoryHistory

__all__ = [
    "MemoryHistory",
    "RecordingCacheBridge",
]
