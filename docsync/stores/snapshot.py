"""Compact serialisation of documented entities for checkpoint markers."""

from __future__ import annotations

import base64
import binascii
import json
import zlib
from typing import Dict, List, Optional, Sequence

from ..models import Entity, SourceLocation, TestAssertion

_SNAPSHOT_VERSION = 1


def encode_snapshot(entities: Sequence[Entity]) -> str:
    """Encode entities as zlib-compressed, base64 JSON safe for an HTML comment."""
    payload = {"v": _SNAPSHOT_VERSION, "e": [_entity_to_dict(entity) for entity in entities]}
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.b64encode(zlib.compress(raw, 9)).decode("ascii")


def decode_snapshot(token: str) -> Optional[List[Entity]]:
    """Return the entities stored in ``token`` or ``None`` when it is unreadable."""
    try:
        raw = zlib.decompress(base64.b64decode(token.encode("ascii"), validate=True))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, zlib.error, UnicodeError, ValueError):
        return None
    if not isinstance(payload, dict) or payload.get("v") != _SNAPSHOT_VERSION:
        return None
    items = payload.get("e")
    if not isinstance(items, list):
        return None
    entities: List[Entity] = []
    for item in items:
        entity = _entity_from_dict(item)
        if entity is None:
            return None
        entities.append(entity)
    return entities


def _entity_to_dict(entity: Entity) -> Dict[str, object]:
    return {
        "k": entity.kind,
        "i": entity.identity,
        "a": [list(pair) for pair in entity.attributes],
        "p": entity.location.path,
        "l": entity.location.line,
        "t": [
            [
                assertion.check,
                assertion.attribute,
                assertion.expected,
                assertion.location.path,
                assertion.location.line,
                assertion.statement,
            ]
            for assertion in entity.test_assertions
        ],
    }


def _entity_from_dict(payload: object) -> Optional[Entity]:
    if not isinstance(payload, dict):
        return None
    kind = payload.get("k")
    identity = payload.get("i")
    path = payload.get("p", "")
    line = payload.get("l", 0)
    if not isinstance(kind, str) or not isinstance(identity, str):
        return None
    if not isinstance(path, str) or not isinstance(line, int):
        return None
    attributes = []
    for pair in payload.get("a", []):
        if not (isinstance(pair, list) and len(pair) == 2 and all(isinstance(part, str) for part in pair)):
            return None
        attributes.append((pair[0], pair[1]))
    assertions = []
    for row in payload.get("t", []):
        if not isinstance(row, list) or len(row) != 6:
            return None
        check, attribute, expected, test_path, test_line, statement = row
        if not isinstance(test_line, int):
            return None
        assertions.append(
            TestAssertion(
                check=str(check),
                attribute=str(attribute),
                expected=str(expected),
                location=SourceLocation(str(test_path), test_line),
                statement=str(statement),
            )
        )
    return Entity(
        kind=kind,
        identity=identity,
        attributes=tuple(attributes),
        location=SourceLocation(path, line),
        test_assertions=tuple(assertions),
    )


__all__ = ["decode_snapshot", "encode_snapshot"]
