"""
FormRules Rule Parser
=====================

Parses pipe-separated rule strings into rule specs.

Format:
    name1:p1,p2|name2|name3:p1

Each token splits on its first ``:``; the remainder splits on ``,``
with empty segments dropped. Pattern rules keep the remainder whole.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple

# Rules whose single parameter is the raw remainder after the first colon
UNSPLIT_RULES = frozenset({"regex", "not_regex"})


@dataclass(frozen=True)
class RuleSpec:
    """
    A parsed rule.

    Attributes:
        name: Rule name
        parameters: Ordered rule parameters
    """

    name: str
    parameters: Tuple[str, ...] = ()

    def param(self, index: int, default: Any = None) -> Any:
        """Get parameter by position."""
        if 0 <= index < len(self.parameters):
            return self.parameters[index]
        return default

    def __str__(self) -> str:
        if not self.parameters:
            return self.name
        return f"{self.name}:{','.join(self.parameters)}"


def parse_rule(token: str) -> RuleSpec:
    """
    Parse a single rule token.

    Example: "between:3,20" -> RuleSpec("between", ("3", "20"))
    """
    name, _, remainder = token.partition(":")
    name = name.strip()

    if name in UNSPLIT_RULES:
        params = (remainder,) if remainder else ()
    else:
        params = tuple(p for p in remainder.split(",") if p != "")

    return RuleSpec(name=name, parameters=params)


def parse_rules(spec: Any) -> List[RuleSpec]:
    """
    Parse a rule chain.

    Args:
        spec: Rule string, or a list whose items are single rule tokens
            or RuleSpec objects. List items are not split on ``|``, so
            a pattern there may hold an alternation.

    Returns:
        Ordered rule specs; empty for unsupported input
    """
    if isinstance(spec, str):
        return [parse_rule(token.strip()) for token in spec.split("|") if token.strip()]

    if isinstance(spec, (list, tuple)):
        rules: List[RuleSpec] = []
        for item in spec:
            if isinstance(item, RuleSpec):
                rules.append(item)
            elif isinstance(item, str) and item.strip():
                rules.append(parse_rule(item.strip()))
        return rules

    return []


def format_rules(rules: Sequence[RuleSpec]) -> str:
    """Serialize rule specs back into a rule string."""
    return "|".join(str(rule) for rule in rules)
