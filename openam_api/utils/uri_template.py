"""
URI template expansion for OpenAM endpoint paths.

Implements the subset of RFC 6570 used by the operation configuration:

- ``{var}``    simple string expansion
- ``{+var}``   reserved expansion (reserved characters are kept)
- ``{/var}``   path segment expansion
- ``{?a,b}``   form-style query expansion

A variable missing from the supplied parameters is a configuration error.
A variable explicitly set to ``None`` is undefined and is omitted.
"""

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

_EXPRESSION = re.compile(r"\{([^{}]*)\}")

# OpenAM session ids carry "+" as a literal character
_SIMPLE_SAFE = "+"
_RESERVED_SAFE = ":/?#[]@!$&'()*+,;="


class TemplateError(ValueError):
    """Raised when a URI template cannot be expanded."""

    def __init__(self, message: str, template: str, missing: Optional[List[str]] = None):
        self.template = template
        self.missing = missing or []
        super().__init__(message)


def _split_expression(expression: str, template: str) -> Tuple[str, List[str]]:
    operator = ""
    if expression and expression[0] in "+/?":
        operator, expression = expression[0], expression[1:]

    names = [name.strip() for name in expression.split(",")]
    if not all(names):
        raise TemplateError(f"Malformed expression '{{{expression}}}'", template)
    return operator, names


def _encode(value: Any, operator: str) -> str:
    safe = _RESERVED_SAFE if operator == "+" else _SIMPLE_SAFE
    return quote(str(value), safe=safe)


def variables(template: str) -> List[str]:
    """Return the variable names referenced by a template, in order."""
    names: List[str] = []
    for match in _EXPRESSION.finditer(template):
        _, expr_names = _split_expression(match.group(1), template)
        names.extend(n for n in expr_names if n not in names)
    return names


def expand(template: str, params: Mapping[str, Any]) -> str:
    """
    Expand a URI template with the given parameters.

    Args:
        template: URI template, e.g. ``/json/sessions/{token}``
        params: Values for the template variables

    Returns:
        The expanded URI

    Raises:
        TemplateError: If a referenced variable has no supplied value
    """
    missing = [name for name in variables(template) if name not in params]
    if missing:
        raise TemplateError(
            f"Unresolved placeholder(s) {', '.join(missing)} in '{template}'",
            template,
            missing,
        )

    def replace(match: "re.Match") -> str:
        operator, names = _split_expression(match.group(1), template)
        defined: Dict[str, Any] = {
            name: params[name] for name in names if params[name] is not None
        }

        if operator == "?":
            if not defined:
                return ""
            pairs = [f"{quote(name)}={_encode(value, operator)}" for name, value in defined.items()]
            return "?" + "&".join(pairs)

        values = [_encode(value, operator) for value in defined.values()]
        if operator == "/":
            return "".join(f"/{value}" for value in values)
        return ",".join(values)

    return _EXPRESSION.sub(replace, template)
