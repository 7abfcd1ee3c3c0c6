"""
FormRules Messages
==================

Error message resolution and placeholder substitution.

Resolution order for a failed rule:

1. The caller's override for that rule (``messages[field][rule]``)
2. The message returned by the rule itself
3. The rule's default template

Whatever is chosen passes through the same substitution:

    :label, :attribute   field label ("first_name" -> "First Name")
    :field               raw field name
    :value               the literal "the input"
    :values              all parameters, comma separated
    :min, :max           first parameter, second (or first) parameter
    :param[i]            i-th parameter
    plus rule-specific tokens (:min_value, :max_width, ...)

Unknown tokens are left as written.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Sequence

FALLBACK_MESSAGE = "The :label field is invalid."

_TOKEN_RE = re.compile(r":([a-z_]+)(?:\[([0-9]+)\])?")
_WORD_START_RE = re.compile(r"\b\w", re.ASCII)


def format_label(name: str) -> str:
    """
    Human label for a field name.

    Underscores become spaces and the first letter of every word is
    upper-cased; other letters are left alone.
    """
    return _WORD_START_RE.sub(lambda m: m.group(0).upper(), name.replace("_", " "))


def build_tokens(
    field_name: str,
    label: str,
    params: Sequence[str],
    extra: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """Placeholder values for one failed rule."""
    tokens = {
        "label": label,
        "attribute": label,
        "field": field_name,
        "value": "the input",
        "values": ", ".join(params),
    }
    if params:
        tokens["min"] = params[0]
        tokens["max"] = params[1] if len(params) > 1 else params[0]
    if extra:
        tokens.update(extra)
    return tokens


def substitute(
    template: str,
    tokens: Mapping[str, str],
    params: Sequence[str] = (),
) -> str:
    """
    Replace placeholders in one pass.

    Each ``:name`` is matched whole, so ``:min_value`` is never read
    as ``:min`` followed by ``_value``.
    """
    def replace(match: "re.Match[str]") -> str:
        name, index = match.group(1), match.group(2)
        if index is not None:
            position = int(index)
            if name == "param" and position < len(params):
                return params[position]
            return match.group(0)
        return tokens.get(name, match.group(0))

    return _TOKEN_RE.sub(replace, template)


def resolve_message(
    rule_name: str,
    params: Sequence[str],
    field_messages: Optional[Mapping[str, Any]],
    rule_message: Optional[str],
    default: Optional[str],
    tokens: Mapping[str, str],
) -> str:
    """
    Pick and render the message for a failed rule.

    Args:
        rule_name: Name of the failed rule
        params: Its parameters
        field_messages: Caller overrides for this field
        rule_message: Message returned by the rule, if any
        default: Rule's default template
        tokens: Placeholder values

    Returns:
        Final message text
    """
    override = (field_messages or {}).get(rule_name)
    if isinstance(override, str) and override:
        template = override
    elif rule_message:
        template = rule_message
    else:
        template = default or FALLBACK_MESSAGE

    return substitute(template, tokens, params)
