"""
Deep merging of request option trees.

Option trees are nested mappings and sequences with scalar leaves. Merging
is associative and right-biased: later arguments win on conflicting
scalars, mappings merge key-wise and sequences are concatenated.
"""

import copy
from typing import Any, Dict, Mapping, Optional


def _merge_value(left: Any, right: Any) -> Any:
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        return _merge_two(left, right)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return list(left) + copy.deepcopy(list(right))
    return copy.deepcopy(right)


def _merge_two(left: Mapping[str, Any], right: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(dict(left))
    for key, value in right.items():
        if key in merged:
            merged[key] = _merge_value(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def merge_deep(*trees: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge option mappings from left to right.

    ``None`` arguments are skipped. The inputs are never mutated.

    Example:
        >>> merge_deep({"headers": {"a": "1"}}, {"headers": {"b": "2"}})
        {'headers': {'a': '1', 'b': '2'}}
    """
    merged: Dict[str, Any] = {}
    for tree in trees:
        if tree is None:
            continue
        merged = _merge_two(merged, tree)
    return merged
