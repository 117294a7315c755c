"""Text helpers shared by extractors of non-JavaScript sources."""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")", "]", "}"}
_QUOTES = {'"', "'", "`"}

JS_LANGUAGES = frozenset({"JavaScript", "TypeScript"})


def line_of(text: str, position: int) -> int:
    return text.count("\n", 0, position) + 1


def find_closing(text: str, open_index: int) -> int:
    """Return the index of the bracket closing ``text[open_index]`` or -1."""
    closer = _OPENERS.get(text[open_index])
    if closer is None:
        return -1
    stack = [closer]
    index = open_index + 1
    quote: Optional[str] = None
    while index < len(text):
        char = text[index]
        if quote is not None:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            stack.append(_OPENERS[char])
        elif char in _CLOSERS:
            if char != stack[-1]:
                return -1
            stack.pop()
            if not stack:
                return index
        index += 1
    return -1


def balanced_body(text: str, open_index: int) -> Optional[str]:
    close = find_closing(text, open_index)
    if close == -1:
        return None
    return text[open_index + 1 : close]


def split_top_level(text: str, separator: str = ",") -> List[str]:
    """Split on ``separator`` outside brackets and quotes."""
    parts: List[str] = []
    current: List[str] = []
    depth = 0
    quote: Optional[str] = None
    for char in text:
        if quote is not None:
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(depth - 1, 0)
        elif char == separator and depth == 0:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return [part.strip() for part in parts if part.strip()]


def arity_label(required: int, maximum: Optional[int]) -> str:
    if maximum is None:
        return f"{required}+"
    if maximum == required:
        return str(required)
    return f"{required}..{maximum}"


def parse_arity(label: str) -> Optional[Tuple[int, Optional[int]]]:
    label = label.strip()
    try:
        if label.endswith("+"):
            return int(label[:-1]), None
        if ".." in label:
            low, high = label.split("..", 1)
            return int(low), int(high)
        value = int(label)
    except ValueError:
        return None
    return value, value


def pascal_case(value: str) -> str:
    words = re.split(r"[^A-Za-z0-9]+", value)
    return "".join(word[:1].upper() + word[1:] for word in words if word)


__all__ = [
    "JS_LANGUAGES",
    "arity_label",
    "balanced_body",
    "find_closing",
    "line_of",
    "parse_arity",
    "pascal_case",
    "split_top_level",
]
