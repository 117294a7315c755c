"""Persistence for document parts and their checkpoints."""

from .checkpoints import CheckpointStore
from .documents import DocumentStore, StoredPart
from .snapshot import decode_snapshot, encode_snapshot

__all__ = ["CheckpointStore", "DocumentStore", "StoredPart", "decode_snapshot", "encode_snapshot"]
