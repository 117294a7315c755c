"""Keep knowledge-base documents in sync with a source tree."""

from .report import SyncReport
from .synchronizer import Synchronizer

__all__ = ["SyncReport", "Synchronizer"]
