"""
FormRules Validation Rules
==========================

Rule base class, registry and the built-in rule catalogue.

Every rule receives the field's value, the parsed parameters and a
RuleContext, and returns an Outcome. Rules are registered by name on a
RuleRegistry; the orchestrator looks them up per parsed rule spec.

Example:
    registry = default_registry.copy()

    @registry.register("even")
    class Even(Rule):
        message = "The :label must be even."

        def evaluate(self, value, params, ctx):
            return Outcome.ok() if to_number(value) % 2 == 0 else Outcome.fail()
"""

from __future__ import annotations

import inspect
import ipaddress
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Pattern,
    Sequence,
    Type,
)
from urllib.parse import urlsplit

import orjson

from formrules.core.config import Config, get_config
from formrules.utils.logger import Logger, get_logger
from formrules.validation import dates
from formrules.validation.dimensions import (
    DECODABLE_TYPES,
    DimensionConstraints,
    check_dimensions,
)
from formrules.validation.parser import RuleSpec
from formrules.validation.sources import FieldEntry, FieldValueSource
from formrules.validation.values import (
    FieldKind,
    FieldValue,
    FileSet,
    Multi,
    Scalar,
    as_list,
    is_blank,
    is_filled,
    is_numeric_value,
    parse_float,
    parse_int,
    raw_value,
    to_number,
    to_text,
)

logger = get_logger("formrules.validation")

PendingCheck = Callable[[], Awaitable["Outcome"]]


@dataclass(frozen=True)
class Outcome:
    """
    Result of evaluating one rule.

    Attributes:
        valid: Whether the rule passed
        message: Context-specific message template, if the rule has one
        pending: Deferred check; set when the result is not known yet
    """

    valid: bool
    message: Optional[str] = None
    pending: Optional[PendingCheck] = field(default=None, compare=False, repr=False)

    @classmethod
    def ok(cls) -> "Outcome":
        return cls(True)

    @classmethod
    def fail(cls, message: Optional[str] = None) -> "Outcome":
        return cls(False, message)

    @classmethod
    def defer(cls, check: PendingCheck) -> "Outcome":
        """Outcome decided later by awaiting ``check()``."""
        return cls(False, None, check)

    @classmethod
    def of(cls, valid: bool) -> "Outcome":
        return cls(bool(valid))

    @property
    def is_pending(self) -> bool:
        return self.pending is not None


@dataclass
class RuleContext:
    """
    Everything a rule may consult besides its own value.

    Attributes:
        field: Identifier of the field under validation
        kind: Declared kind of the field
        source: Value source for cross-field lookups
        selector: How identifiers are matched ("name" or "id")
        config: Configuration (process default when None)
        logger: Logger for lookup tracing
    """

    field: str
    kind: FieldKind
    source: FieldValueSource
    selector: str = "name"
    config: Optional[Config] = None
    logger: Optional[Logger] = None

    def resolve(self, identifier: Optional[str]) -> Optional[FieldEntry]:
        """Find another field in the same source."""
        if not identifier:
            return None
        entry = self.source.find(identifier, self.selector)
        if entry is None:
            (self.logger or logger).debug(
                "Referenced field not found", field=self.field, target=identifier
            )
        return entry

    @property
    def settings(self) -> Config:
        return self.config or get_config()


class Rule(ABC):
    """
    Abstract validation rule.

    Implement `evaluate` to create custom rules. Non-implicit rules are
    never evaluated for blank values; they pass automatically.

    Example:
        class Even(Rule):
            message = "The :label must be even."

            def evaluate(self, value, params, ctx):
                return Outcome.of(to_number(value) % 2 == 0)
    """

    name: str = ""
    implicit: bool = False
    message: str = "The :label field is invalid."

    @abstractmethod
    def evaluate(
        self,
        value: FieldValue,
        params: Sequence[str],
        ctx: RuleContext,
    ) -> Outcome:
        """
        Evaluate the rule.

        Args:
            value: Field value (never blank unless the rule is implicit)
            params: Rule parameters
            ctx: Evaluation context

        Returns:
            Outcome of the check
        """
        ...

    def check(self, value: FieldValue, params: Sequence[str], ctx: RuleContext) -> Outcome:
        """Evaluate, honouring the nullable-by-default contract."""
        if not self.implicit and is_blank(value):
            return Outcome.ok()
        return self.evaluate(value, params, ctx)

    def get_message(self, params: Sequence[str]) -> str:
        """Default message template for these parameters."""
        return self.message

    def tokens(self, params: Sequence[str], ctx: RuleContext) -> Dict[str, str]:
        """Rule-specific placeholder values."""
        return {}


class CallableRule(Rule):
    """
    Rule wrapper for plain predicate functions.

    The function is called as ``func(value, params, ctx)`` and may return
    a bool, an Outcome or an awaitable of either.
    """

    def __init__(
        self,
        name: str,
        func: Callable[..., Any],
        message: Optional[str] = None,
        implicit: bool = False,
    ) -> None:
        self.name = name
        self.func = func
        self.implicit = implicit
        if message:
            self.message = message

    def evaluate(self, value: FieldValue, params: Sequence[str], ctx: RuleContext) -> Outcome:
        result = self.func(value, params, ctx)
        if inspect.isawaitable(result):
            async def finish() -> Outcome:
                return _as_outcome(await result)
            return Outcome.defer(finish)
        return _as_outcome(result)


def _as_outcome(result: Any) -> Outcome:
    if isinstance(result, Outcome):
        return result
    return Outcome.of(bool(result))


class RuleRegistry:
    """
    Rule name to rule mapping.

    Example:
        registry = RuleRegistry()

        @registry.register("numeric", "float", "double")
        class Numeric(Rule):
            ...

        registry.extend("even", lambda v, p, c: to_number(v) % 2 == 0,
                        "The :label must be even.")
    """

    def __init__(self) -> None:
        self._rules: Dict[str, Rule] = {}

    def register(self, *names: str) -> Callable[[Type[Rule]], Type[Rule]]:
        """Class decorator registering a rule under one or more names."""
        def decorator(rule_class: Type[Rule]) -> Type[Rule]:
            rule = rule_class()
            rule_names = names or (rule_class.name,)
            if not rule.name:
                rule.name = rule_names[0]
            for name in rule_names:
                self.add(name, rule)
            return rule_class
        return decorator

    def add(self, name: str, rule: Rule) -> "RuleRegistry":
        if not name:
            raise ValueError("Rule name must not be empty")
        self._rules[name] = rule
        return self

    def extend(
        self,
        name: str,
        func: Callable[..., Any],
        message: Optional[str] = None,
        implicit: bool = False,
    ) -> "RuleRegistry":
        """Register a predicate function as a rule."""
        return self.add(name, CallableRule(name, func, message, implicit))

    def get(self, name: str) -> Optional[Rule]:
        return self._rules.get(name)

    def names(self) -> List[str]:
        return sorted(self._rules)

    def copy(self) -> "RuleRegistry":
        registry = RuleRegistry()
        registry._rules = dict(self._rules)
        return registry

    def dispatch(self, spec: RuleSpec, value: FieldValue, ctx: RuleContext) -> Outcome:
        """
        Evaluate one parsed rule.

        Unknown rules pass. Exceptions raised by a rule become a failing
        outcome and are logged; they never propagate.
        """
        rule = self._rules.get(spec.name)
        if rule is None:
            return Outcome.ok()

        try:
            return rule.check(value, spec.parameters, ctx)
        except Exception as e:
            (ctx.logger or logger).error(
                "Rule raised an exception",
                exception=e,
                field=ctx.field,
                rule=spec.name,
            )
            return Outcome.fail(f"Validation error for rule {spec.name}")

    def __contains__(self, name: str) -> bool:
        return name in self._rules

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._rules)


default_registry = RuleRegistry()
register = default_registry.register


# Shared helpers

def _raw(value: FieldValue) -> Any:
    return raw_value(value)


def _text(value: FieldValue) -> str:
    return to_text(_raw(value))


def _requirement(value: FieldValue) -> Outcome:
    return Outcome.of(is_filled(value))


def _param(params: Sequence[str], index: int) -> Optional[str]:
    return params[index] if index < len(params) else None


def _magnitude(value: FieldValue) -> float:
    """
    Size of a value for min/max/between.

    Files count, numbers compare by value, lists and comma strings by
    element count, other strings by length.
    """
    if isinstance(value, FileSet):
        return float(len(value))
    raw = _raw(value)
    if is_numeric_value(raw):
        return parse_float(raw)
    items = as_list(value)
    if items is not None:
        return float(len(items))
    if isinstance(raw, str):
        return float(len(raw))
    return parse_float(raw)


def _compare_target(params: Sequence[str], ctx: RuleContext) -> Any:
    """Value of the referenced field, or the parameter itself."""
    entry = ctx.resolve(params[0])
    if entry is not None:
        return raw_value(entry.value)
    return params[0]


def _size_compare(value: FieldValue, params: Sequence[str], ctx: RuleContext,
                  compare: Callable[[float, float], bool]) -> Outcome:
    if not params:
        return Outcome.fail()
    raw = _raw(value)
    other = _compare_target(params, ctx)
    if is_numeric_value(raw) and is_numeric_value(other):
        return Outcome.of(compare(parse_float(raw), parse_float(other)))
    # Non-numeric operands compare by length
    return Outcome.of(compare(len(to_text(raw)), len(to_text(other))))


def _date_compare(value: FieldValue, reference: Any,
                  compare: Callable[[Any, Any], bool]) -> Outcome:
    other = dates.parse_date(reference)
    mine = dates.parse_date(_raw(value))
    if other is None or mine is None:
        return Outcome.fail()
    return Outcome.of(compare(mine, other))


class PatternRule(Rule):
    """Rule that matches the whole text form of a value."""

    pattern: Pattern = re.compile(r".*")

    def evaluate(self, value, params, ctx):
        return Outcome.of(self.pattern.fullmatch(_text(value)) is not None)


# Presence

@register("required")
class Required(Rule):
    """Require a non-empty value (whitespace-only strings are empty)."""

    implicit = True
    message = "The :label field is required."

    def evaluate(self, value, params, ctx):
        return _requirement(value)


@register("required_if")
class RequiredIf(Rule):
    """Required when another field compares to a value list (``=``, ``==``, ``!=``)."""

    implicit = True
    message = "The :label field is required when specified conditions are met."

    def evaluate(self, value, params, ctx):
        if len(params) < 3:
            return Outcome.ok()

        target_name, operator, values = params[0], params[1], list(params[2:])
        target = ctx.resolve(target_name)
        if target is None:
            return Outcome.ok()

        target_text = to_text(raw_value(target.value))
        if operator in ("=", "=="):
            needed = target_text in values
        elif operator == "!=":
            needed = target_text not in values
        else:
            needed = False

        return _requirement(value) if needed else Outcome.ok()


@register("required_with")
class RequiredWith(Rule):
    """Required when any listed field is filled."""

    implicit = True
    message = "The :label field is required when :values is present."

    def evaluate(self, value, params, ctx):
        for name in params:
            entry = ctx.resolve(name)
            if entry is not None and is_filled(entry.value):
                return _requirement(value)
        return Outcome.ok()


@register("required_unless")
class RequiredUnless(Rule):
    """Required unless another field holds one of the listed values."""

    implicit = True
    message = "The :label field is required unless :param[0] is in :others."

    def evaluate(self, value, params, ctx):
        if len(params) < 2:
            return Outcome.ok()

        target = ctx.resolve(params[0])
        if target is None:
            return _requirement(value)
        if to_text(raw_value(target.value)) in params[1:]:
            return Outcome.ok()
        return _requirement(value)

    def tokens(self, params, ctx):
        return {"others": ", ".join(params[1:])}


ACCEPTED_STRINGS = ("true", "1", "yes", "on")


def is_accepted(raw: Any) -> bool:
    """True, 1, or one of "true", "1", "yes", "on"."""
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return raw == 1
    return isinstance(raw, str) and raw in ACCEPTED_STRINGS


@register("accepted")
class Accepted(Rule):
    implicit = True
    message = "The :label must be accepted."

    def evaluate(self, value, params, ctx):
        return Outcome.of(isinstance(value, Scalar) and is_accepted(value.value))


@register("nullable", "sometimes")
class Marker(Rule):
    """Marker rules; they never fail."""

    def evaluate(self, value, params, ctx):
        return Outcome.ok()


# Types

@register("string")
class String(Rule):
    message = "The :label field must be a string."

    def evaluate(self, value, params, ctx):
        return Outcome.of(isinstance(value, Scalar) and isinstance(value.value, str))


def _has_exponent(raw: Any) -> bool:
    return isinstance(raw, str) and ("e" in raw or "E" in raw)


@register("numeric", "float", "double")
class Numeric(Rule):
    """Finite number; scientific notation in strings is rejected."""

    message = "The :label field must be a number."

    def evaluate(self, value, params, ctx):
        raw = _raw(value)
        if not isinstance(value, Scalar) or _has_exponent(raw):
            return Outcome.fail()
        return Outcome.of(math.isfinite(to_number(raw)) and not math.isnan(parse_float(raw)))


@register("integer")
class Integer(Rule):
    message = "The :label field must be an integer."

    def evaluate(self, value, params, ctx):
        raw = _raw(value)
        if not isinstance(value, Scalar) or _has_exponent(raw):
            return Outcome.fail()
        number = to_number(raw)
        return Outcome.of(math.isfinite(number) and number.is_integer())


BOOLEAN_STRINGS = ("true", "false", "1", "0")


@register("boolean")
class Boolean(Rule):
    message = "The :label field must be true or false."

    def evaluate(self, value, params, ctx):
        if not isinstance(value, Scalar):
            return Outcome.fail()
        raw = value.value
        if isinstance(raw, str):
            return Outcome.of(raw in BOOLEAN_STRINGS)
        return Outcome.of(isinstance(raw, (bool, int, float)) and raw in (0, 1))


@register("array")
class Array(Rule):
    """A list, or a comma-separated string."""

    message = "The :label field must be an array."

    def evaluate(self, value, params, ctx):
        return Outcome.of(as_list(value) is not None)


@register("json")
class Json(Rule):
    message = "The :label field must be a valid JSON string."

    def evaluate(self, value, params, ctx):
        try:
            orjson.loads(_text(value))
        except orjson.JSONDecodeError:
            return Outcome.fail()
        return Outcome.ok()


@register("file")
class File(Rule):
    message = "The :label field must be a file."

    def evaluate(self, value, params, ctx):
        return Outcome.of(isinstance(value, FileSet))


# String formats

@register("email")
class Email(PatternRule):
    """Simple ``local@domain.tld`` check; not a full RFC 5322 parser."""

    message = "The :label field must be a valid email address."
    pattern = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


SPECIAL_SCHEMES = frozenset({"http", "https", "ftp", "ws", "wss"})

_SCHEME_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.\-]*:")
_FORBIDDEN_HOST_RE = re.compile(r"[\s#%/:<>?@\[\\\]^|]")


def is_url(text: str) -> bool:
    """
    Check that text parses as an absolute URL.

    Web schemes need a well-formed host and port; other schemes only
    need to be syntactically valid.
    """
    text = text.strip()
    if not _SCHEME_RE.match(text):
        return False
    try:
        parts = urlsplit(text)
        parts.port  # raises ValueError for a malformed port
    except ValueError:
        return False

    if parts.scheme.lower() not in SPECIAL_SCHEMES:
        return True

    host = parts.hostname
    if not host:
        return False
    if ":" in host:
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            return False
        return True
    return _FORBIDDEN_HOST_RE.search(host) is None


@register("url")
class Url(Rule):
    message = "The :label field must be a valid URL."

    def evaluate(self, value, params, ctx):
        return Outcome.of(is_url(_text(value)))


@register("alpha")
class Alpha(PatternRule):
    message = "The :label field must contain only letters."
    pattern = re.compile(r"[a-zA-Z]+")


@register("alpha_num")
class AlphaNum(PatternRule):
    message = "The :label field must contain only letters and numbers."
    pattern = re.compile(r"[a-zA-Z0-9]+")


@register("alpha_dash")
class AlphaDash(PatternRule):
    message = "The :label may only contain letters, numbers, dashes and underscores."
    pattern = re.compile(r"[a-zA-Z0-9_-]+")


@register("lowercase")
class Lowercase(Rule):
    message = "The :label must be lowercase."

    def evaluate(self, value, params, ctx):
        text = _text(value)
        return Outcome.of(text.lower() == text)


@register("uppercase")
class Uppercase(Rule):
    message = "The :label must be uppercase."

    def evaluate(self, value, params, ctx):
        text = _text(value)
        return Outcome.of(text.upper() == text)


def compile_pattern(param: Optional[str]) -> Pattern:
    """
    Compile a ``regex`` parameter, stripping optional ``/`` delimiters.

    Raises:
        re.error: Invalid or missing pattern
    """
    if param is None:
        raise re.error("missing pattern")
    if param.startswith("/"):
        param = param[1:]
    if param.endswith("/"):
        param = param[:-1]
    return re.compile(param)


@register("regex")
class Regex(Rule):
    message = "The :label field format is invalid."

    def evaluate(self, value, params, ctx):
        try:
            pattern = compile_pattern(_param(params, 0))
        except re.error:
            return Outcome.fail("Invalid regex pattern")
        return Outcome.of(pattern.search(_text(value)) is not None)


@register("not_regex")
class NotRegex(Regex):
    def evaluate(self, value, params, ctx):
        outcome = super().evaluate(value, params, ctx)
        if outcome.message:
            return outcome
        return Outcome.of(not outcome.valid)


@register("uuid")
class Uuid(PatternRule):
    """RFC 4122 versions 1 to 5."""

    message = "The :label field must be a valid UUID."
    pattern = re.compile(
        r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
        re.IGNORECASE,
    )


def is_ip(text: str, version: Optional[int] = None) -> bool:
    """Check for an IPv4 and/or IPv6 address."""
    candidates = {
        4: (ipaddress.IPv4Address,),
        6: (ipaddress.IPv6Address,),
    }.get(version, (ipaddress.IPv4Address, ipaddress.IPv6Address))
    for address_type in candidates:
        try:
            address_type(text)
        except ValueError:
            continue
        return True
    return False


@register("ip")
class Ip(Rule):
    message = "The :label field must be a valid IP address."
    version: Optional[int] = None

    def evaluate(self, value, params, ctx):
        return Outcome.of(is_ip(_text(value), self.version))


@register("ipv4")
class Ipv4(Ip):
    message = "The :label field must be a valid IPv4 address."
    version = 4


@register("ipv6")
class Ipv6(Ip):
    message = "The :label field must be a valid IPv6 address."
    version = 6


# Sizes and ranges

@register("min")
class Min(Rule):
    message = "The :label field must be at least :min."

    def evaluate(self, value, params, ctx):
        return Outcome.of(_magnitude(value) >= parse_float(_param(params, 0)))


@register("max")
class Max(Rule):
    message = "The :label field must not be greater than :max."

    def evaluate(self, value, params, ctx):
        return Outcome.of(_magnitude(value) <= parse_float(_param(params, 0)))


@register("between")
class Between(Rule):
    """
    Inclusive range using the same shape rules as min/max.

    Time fields compare ``HH:MM`` as minutes since midnight.
    """

    message = "The :label field must be between :min_value and :max_value."

    def evaluate(self, value, params, ctx):
        low, high = _param(params, 0), _param(params, 1)
        if ctx.kind == FieldKind.TIME:
            minutes = dates.time_to_minutes(_text(value))
            return Outcome.of(
                dates.time_to_minutes(low) <= minutes <= dates.time_to_minutes(high)
            )
        size = _magnitude(value)
        return Outcome.of(parse_float(low) <= size <= parse_float(high))

    def tokens(self, params, ctx):
        tokens = {}
        if len(params) > 0:
            tokens["min_value"] = params[0]
        if len(params) > 1:
            tokens["max_value"] = params[1]
        return tokens


@register("size")
class Size(Rule):
    """Per-file size cap in megabytes."""

    message = "The :label file size must not exceed :sizeMB."

    def _limit(self, params, ctx) -> float:
        if params:
            return parse_float(params[0])
        return ctx.settings.get_float("validation.default_file_size_mb", 4.0)

    def evaluate(self, value, params, ctx):
        if not isinstance(value, FileSet):
            return Outcome.ok()
        limit = self._limit(params, ctx) * 1024 * 1024
        return Outcome.of(not any(f.size > limit for f in value))

    def tokens(self, params, ctx):
        return {"size": params[0] if params else to_text(self._limit(params, ctx))}


_DIGITS_RE = re.compile(r"[0-9]+")


@register("digits")
class Digits(Rule):
    message = "The :label field must be :param[0] digits."

    def evaluate(self, value, params, ctx):
        text = _text(value)
        return Outcome.of(
            _DIGITS_RE.fullmatch(text) is not None and len(text) == parse_int(_param(params, 0))
        )


@register("digits_between")
class DigitsBetween(Rule):
    message = "The :label field must be between :min and :max digits."

    def evaluate(self, value, params, ctx):
        text = _text(value)
        low, high = parse_int(_param(params, 0)), parse_int(_param(params, 1))
        return Outcome.of(_DIGITS_RE.fullmatch(text) is not None and low <= len(text) <= high)


_DECIMAL_RE = re.compile(r"[+-]?[0-9]*\.?[0-9]+")


@register("decimal")
class Decimal(Rule):
    """
    Count of digits after the decimal point.

    ``decimal:2`` requires exactly two places, ``decimal:1,3`` one to
    three; without parameters at least one place is required.
    """

    def evaluate(self, value, params, ctx):
        low: Any = 1
        high: Any = None
        if len(params) == 1:
            low = high = parse_int(params[0])
        elif len(params) >= 2:
            low, high = parse_int(params[0]), parse_int(params[1])

        text = _text(value)
        if not _DECIMAL_RE.fullmatch(text):
            return Outcome.fail()

        whole, dot, fraction = text.partition(".")
        if not dot:
            return Outcome.of(low == 0)

        places = len(fraction)
        if high is None:
            return Outcome.of(places >= low)
        return Outcome.of(low <= places <= high)

    def get_message(self, params):
        if not params:
            return "The :label must have at least one decimal place."
        if len(params) > 1:
            return "The :label must have :min to :max decimal places."
        return "The :label must have :param[0] decimal places."


_CURRENCY_RE = re.compile(r"[0-9,.]+")
_CURRENCY_INT_RE = re.compile(r"[0-9,]*")


@register("currency")
class Currency(Rule):
    """Digits, thousands commas and at most one decimal point."""

    message = "The :label field must be a valid currency amount."

    def evaluate(self, value, params, ctx):
        if params:
            max_length = parse_int(params[0])
        else:
            max_length = ctx.settings.get_int("validation.currency_max_length", 16)

        text = _text(value)
        if len(text) > max_length:
            return Outcome.fail()
        if _has_exponent(text) or not _CURRENCY_RE.fullmatch(text):
            return Outcome.fail()

        parts = text.split(".")
        if len(parts) > 2:
            return Outcome.fail()
        if len(parts) == 2 and not _DIGITS_RE.fullmatch(parts[1]):
            return Outcome.fail()
        return Outcome.of(_CURRENCY_INT_RE.fullmatch(parts[0]) is not None)


@register("min_length")
class MinLength(Rule):
    """String length, whatever the value looks like."""

    message = "The :label must be at least :param[0] characters."

    def evaluate(self, value, params, ctx):
        return Outcome.of(len(_text(value)) >= parse_int(_param(params, 0)))


@register("max_length")
class MaxLength(Rule):
    message = "The :label may not be greater than :param[0] characters."

    def evaluate(self, value, params, ctx):
        return Outcome.of(len(_text(value)) <= parse_int(_param(params, 0)))


# Cross-field comparison

@register("same")
class Same(Rule):
    message = "The :label field must match :param[0]."

    def evaluate(self, value, params, ctx):
        target = ctx.resolve(_param(params, 0))
        if target is None:
            return Outcome.fail("Comparison field not found")
        return Outcome.of(_raw(value) == raw_value(target.value))


@register("different")
class Different(Rule):
    """Must differ from another field; passes when that field is missing."""

    message = "The :label field must be different from :param[0]."

    def evaluate(self, value, params, ctx):
        target = ctx.resolve(_param(params, 0))
        if target is None:
            return Outcome.ok()
        return Outcome.of(_raw(value) != raw_value(target.value))


@register("confirmed")
class Confirmed(Rule):
    """Must equal the ``<field>_confirmation`` field."""

    message = "The :label confirmation does not match."

    def evaluate(self, value, params, ctx):
        target = ctx.resolve(f"{ctx.field}_confirmation")
        if target is None:
            return Outcome.fail("Confirmation field not found")
        return Outcome.of(_raw(value) == raw_value(target.value))


@register("gt")
class GreaterThan(Rule):
    message = "The :label must be greater than :param[0]."

    def evaluate(self, value, params, ctx):
        return _size_compare(value, params, ctx, lambda a, b: a > b)


@register("lt")
class LessThan(Rule):
    message = "The :label must be less than :param[0]."

    def evaluate(self, value, params, ctx):
        return _size_compare(value, params, ctx, lambda a, b: a < b)


@register("lte")
class LessThanOrEqual(Rule):
    message = "The :label must be less than or equal to :param[0]."

    def evaluate(self, value, params, ctx):
        return _size_compare(value, params, ctx, lambda a, b: a <= b)


# Dates and times

@register("date")
class Date(Rule):
    message = "The :label field must be a valid date."

    def evaluate(self, value, params, ctx):
        return Outcome.of(dates.parse_date(_raw(value)) is not None)


@register("date_format")
class DateFormat(Rule):
    message = "The :label field must match the format :param[0]."

    def evaluate(self, value, params, ctx):
        fmt = _param(params, 0)
        if not fmt:
            return Outcome.fail()
        try:
            return Outcome.of(dates.check_date_format(_text(value), fmt))
        except KeyError:
            (ctx.logger or logger).warning("Unsupported date format", field=ctx.field, format=fmt)
            return Outcome.fail()


@register("after")
class After(Rule):
    message = "The :label field must be a date after :param[0]."

    def evaluate(self, value, params, ctx):
        return _date_compare(value, _param(params, 0), lambda a, b: a > b)


@register("before")
class Before(Rule):
    message = "The :label field must be a date before :param[0]."

    def evaluate(self, value, params, ctx):
        return _date_compare(value, _param(params, 0), lambda a, b: a < b)


@register("after_or_equal")
class AfterOrEqual(Rule):
    """Compares against a field when one matches, else a literal date."""

    message = "The :label field must be a date after or equal to :param[0]."

    def evaluate(self, value, params, ctx):
        if not params:
            return Outcome.fail()
        return _date_compare(value, _compare_target(params, ctx), lambda a, b: a >= b)


@register("before_or_equal")
class BeforeOrEqual(Rule):
    message = "The :label field must be a date before or equal to :param[0]."

    def evaluate(self, value, params, ctx):
        if not params:
            return Outcome.fail()
        return _date_compare(value, _compare_target(params, ctx), lambda a, b: a <= b)


@register("weekend")
class Weekend(Rule):
    message = "The :label field must be a weekend date."

    def evaluate(self, value, params, ctx):
        parsed = dates.parse_date(_raw(value))
        if parsed is None:
            return Outcome.fail()
        return Outcome.of(parsed.weekday() >= 5)


@register("time")
class Time(PatternRule):
    """24-hour ``H:MM`` or ``HH:MM``."""

    message = "The :label field must be a valid time."
    pattern = re.compile(r"([01]?[0-9]|2[0-3]):[0-5][0-9]")


# Selection

@register("in")
class In(Rule):
    """Membership by string equality; every selected item must be listed."""

    message = "The selected :label is invalid."

    def evaluate(self, value, params, ctx):
        if isinstance(value, Multi):
            return Outcome.of(all(item in params for item in value))
        return Outcome.of(_text(value) in params)


@register("not_in")
class NotIn(Rule):
    message = "The selected :label is invalid."

    def evaluate(self, value, params, ctx):
        if isinstance(value, Multi):
            return Outcome.of(not any(item in params for item in value))
        return Outcome.of(_text(value) not in params)


@register("contains")
class Contains(Rule):
    message = "The :label field must contain: :values."

    def evaluate(self, value, params, ctx):
        text = _text(value)
        return Outcome.of(all(part in text for part in params))


@register("doesnt_contain")
class DoesntContain(Rule):
    message = "The :label field must not contain: :values."

    def evaluate(self, value, params, ctx):
        text = _text(value)
        return Outcome.of(not any(part in text for part in params))


@register("starts_with")
class StartsWith(Rule):
    message = "The :label field must start with one of the following: :values."

    def evaluate(self, value, params, ctx):
        return Outcome.of(_text(value).startswith(tuple(params)))


@register("ends_with")
class EndsWith(Rule):
    message = "The :label field must end with one of the following: :values."

    def evaluate(self, value, params, ctx):
        return Outcome.of(_text(value).endswith(tuple(params)))


# Files

@register("mimes")
class Mimes(Rule):
    """Extension allowlist, case-insensitive, applied to every file."""

    message = "The :label file must be a file of type: :values."

    def evaluate(self, value, params, ctx):
        if not isinstance(value, FileSet):
            return Outcome.fail()
        allowed = {p.lower() for p in params}
        return Outcome.of(all(f.extension in allowed for f in value))


IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "image/bmp",
    "image/tiff",
})


@register("image")
class Image(Rule):
    """The first file must have an image MIME type."""

    message = "The :label must be an image."

    def evaluate(self, value, params, ctx):
        if not isinstance(value, FileSet):
            return Outcome.fail()
        return Outcome.of(value.first().mime_type in IMAGE_TYPES)


@register("dimensions")
class Dimensions(Rule):
    """
    Pixel constraints on the first file.

    Decoding is asynchronous, so decodable images produce a pending
    outcome. Files of other types pass.
    """

    message = "The :label has invalid image dimensions."

    def evaluate(self, value, params, ctx):
        if not isinstance(value, FileSet):
            return Outcome.fail()

        file = value.first()
        if file.mime_type not in DECODABLE_TYPES:
            return Outcome.ok()

        constraints = DimensionConstraints.parse(params)

        async def measure() -> Outcome:
            return Outcome.of(await check_dimensions(file, constraints))

        return Outcome.defer(measure)

    def tokens(self, params, ctx):
        tokens = {}
        for param in params:
            key, _, raw = param.partition("=")
            if key.strip() and raw.strip():
                tokens[key.strip()] = raw.strip()
        return tokens
