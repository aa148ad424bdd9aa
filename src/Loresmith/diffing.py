"""Structural diffing over JSON-like content payloads.

Payloads are treated as opaque trees of mappings, lists and scalars so the
same helpers serve every content type. Everything here is pure: no I/O, no
logging, no mutation of the inputs.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

DEFAULT_MAX_DIFF_ENTRIES = 200
DEFAULT_SUMMARY_MAX_KEYS = 6


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality with JSON semantics.

    Mapping key order is irrelevant, list order is significant, ``None`` only
    equals ``None`` and booleans never equal numbers.
    """
    if a is b:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if len(a) != len(b):
            return False
        return all(key in b and deep_equal(a[key], b[key]) for key in a)
    if _is_list(a) and _is_list(b):
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    if type(a) is not type(b):
        return False
    return a == b


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Trim, drop empties and sort. Duplicates are kept."""
    if not tags:
        return []
    return sorted(t.strip() for t in tags if isinstance(t, str) and t.strip())


def tags_equal(a: Iterable[str] | None, b: Iterable[str] | None) -> bool:
    a_list = list(a) if a is not None else None
    b_list = list(b) if b is not None else None
    if not a_list and not b_list:
        return True
    if a_list is None or b_list is None:
        return False
    return normalize_tags(a_list) == normalize_tags(b_list)


def top_level_changes(previous: Mapping[str, Any], next_: Mapping[str, Any]) -> list[str]:
    """Sorted first-level keys whose values differ.

    A key present on only one side counts as changed unless its value there
    is ``None``.
    """
    changed = []
    for key in set(previous) | set(next_):
        if not deep_equal(previous.get(key), next_.get(key)):
            changed.append(key)
    return sorted(changed)


def build_change_summary(
    *,
    content_changed: bool,
    changed_keys: Sequence[str] = (),
    notes_changed: bool = False,
    tags_changed: bool = False,
    favorite_changed: bool = False,
    max_keys: int = DEFAULT_SUMMARY_MAX_KEYS,
) -> str:
    """Human-readable summary of an edit, e.g. ``Updated content (b, c), notes``."""
    parts: list[str] = []
    if content_changed:
        if changed_keys:
            shown = ", ".join(changed_keys[:max_keys])
            if len(changed_keys) > max_keys:
                shown += ", ..."
            parts.append(f"content ({shown})")
        else:
            parts.append("content")
    if notes_changed:
        parts.append("notes")
    if tags_changed:
        parts.append("tags")
    if favorite_changed:
        parts.append("favorite")
    if not parts:
        return "Content updated"
    return "Updated " + ", ".join(parts)


def _ordered_union(a: Mapping[str, Any], b: Mapping[str, Any]) -> list[str]:
    keys = list(a)
    keys.extend(k for k in b if k not in a)
    return keys


def collect_diffs(
    before: Any, after: Any, *, limit: int = DEFAULT_MAX_DIFF_ENTRIES
) -> tuple[list[dict[str, Any]], bool]:
    """Leaf-level differences between two payloads.

    Returns ``(differences, truncated)``. Each difference is
    ``{"path", "before", "after"}`` with paths like ``attributes.strength`` or
    ``spells[2].name``; ``$`` denotes the root. Collection stops at ``limit``.
    """
    diffs: list[dict[str, Any]] = []

    def walk(b: Any, a: Any, path: str) -> bool:
        if len(diffs) >= limit:
            return True
        if deep_equal(b, a):
            return False
        if _is_list(b) and _is_list(a):
            for index in range(max(len(b), len(a))):
                left = b[index] if index < len(b) else None
                right = a[index] if index < len(a) else None
                if walk(left, right, f"{path}[{index}]"):
                    return True
            return len(diffs) >= limit
        if isinstance(b, Mapping) and isinstance(a, Mapping):
            for key in _ordered_union(b, a):
                if walk(b.get(key), a.get(key), f"{path}.{key}" if path else key):
                    return True
            return len(diffs) >= limit
        diffs.append({"path": path or "$", "before": b, "after": a})
        return len(diffs) >= limit

    truncated = walk(before, after, "")
    return diffs, truncated
