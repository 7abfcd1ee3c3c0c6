"""
FormRules Validator
===================

Validation orchestrator.

Runs each field's rule chain against a value source, stops a chain at
its first failure and collects one message per field.

Example:
    validator = Validator({
        "email": "required|email",
        "age": "required|integer|between:18,65",
        "skills[]": "required|min:2",
    })

    result = validator.validate(MappingValueSource(data))
    if not result:
        print(result.get_errors())

A chain that reaches an asynchronous rule (``dimensions``) is suspended
there. ``await result.resolve()`` (or ``validate_async``) finishes it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from formrules.core.config import Config, get_config
from formrules.utils.logger import Logger, LogLevel, get_logger
from formrules.validation.messages import build_tokens, format_label, resolve_message
from formrules.validation.parser import RuleSpec, parse_rules
from formrules.validation.rules import (
    Outcome,
    RuleContext,
    RuleRegistry,
    default_registry,
)
from formrules.validation.sources import FieldEntry, FieldValueSource, MappingValueSource

GLOBAL_KEY = "_global"

RulesInput = Union[str, Sequence[Union[str, RuleSpec]]]


class ValidationState(str, Enum):
    """Lifecycle of a validation run."""

    IDLE = "idle"
    RUNNING = "running"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ValidationError(Exception):
    """
    Validation failed exception.

    Carries the flattened errors (first message per field).
    """

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

    def __str__(self) -> str:
        if self.errors:
            lines = [f"  - {name}: {msg}" for name, msg in self.errors.items()]
            return f"{self.message}:\n" + "\n".join(lines)
        return self.message

    def first(self, field_name: Optional[str] = None) -> Optional[str]:
        """Get first error message."""
        if field_name:
            return self.errors.get(field_name)
        return next(iter(self.errors.values()), None)


class ErrorStore:
    """
    Messages recorded during one run, keyed by field.

    Array elements are keyed ``<base>_<index>``.
    """

    def __init__(self) -> None:
        self._errors: Dict[str, List[str]] = {}

    def add(self, field_name: str, message: str) -> None:
        self._errors.setdefault(field_name, []).append(message)

    def get(self, field_name: str) -> List[str]:
        return list(self._errors.get(field_name, []))

    def first(self, field_name: str) -> Optional[str]:
        messages = self._errors.get(field_name)
        return messages[0] if messages else None

    def fields(self) -> List[str]:
        return list(self._errors)

    def flatten(self) -> Dict[str, str]:
        """First message per field."""
        return {name: messages[0] for name, messages in self._errors.items() if messages}

    def to_dict(self) -> Dict[str, List[str]]:
        return {name: list(messages) for name, messages in self._errors.items()}

    def clear(self) -> None:
        self._errors.clear()

    def __contains__(self, field_name: str) -> bool:
        return bool(self._errors.get(field_name))

    def __iter__(self) -> Iterator[str]:
        return iter(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return any(self._errors.values())

    def __repr__(self) -> str:
        return f"ErrorStore({self._errors!r})"


@dataclass
class FieldTarget:
    """One resolved field (or array element) under validation."""

    key: str
    identifier: str
    name: str
    label: str
    entry: FieldEntry
    messages: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class PendingField:
    """A chain suspended on a deferred outcome."""

    target: FieldTarget
    spec: RuleSpec
    outcome: Outcome
    remaining: Sequence[RuleSpec]
    ctx: RuleContext


class ValidationResult:
    """
    Result of a validation run.

    Truthy only when the run completed and no field failed. While any
    check is pending the result is not valid.
    """

    def __init__(self, validator: "Validator") -> None:
        self.errors = ErrorStore()
        self.state = ValidationState.IDLE
        self._validator = validator
        self._pending: List[PendingField] = []

    @property
    def valid(self) -> bool:
        return self.state == ValidationState.COMPLETED and not self.errors

    @property
    def pending_fields(self) -> List[str]:
        return [p.target.key for p in self._pending]

    def first_error(self, field_name: Optional[str] = None) -> Optional[str]:
        """Get first error message, for a field or overall."""
        if field_name:
            return self.errors.first(field_name)
        return next(iter(self.errors.flatten().values()), None)

    def get_errors(self, flatten: bool = True) -> Union[Dict[str, str], Dict[str, List[str]]]:
        return get_errors(self.errors, flatten)

    def raise_if_invalid(self) -> None:
        """Raise ValidationError unless the run completed cleanly."""
        if self.state == ValidationState.PENDING:
            raise ValidationError("Validation has pending checks", self.errors.flatten())
        if not self.valid:
            raise ValidationError(errors=self.errors.flatten())

    async def resolve(self) -> "ValidationResult":
        """
        Await every pending check and continue the suspended chains.

        Safe to call on a result with nothing pending.
        """
        while self._pending:
            batch, self._pending = self._pending, []
            outcomes = await asyncio.gather(
                *(p.outcome.pending() for p in batch),
                return_exceptions=True,
            )
            for pending, outcome in zip(batch, outcomes):
                if isinstance(outcome, Exception):
                    self._validator.logger.error(
                        "Deferred rule raised an exception",
                        exception=outcome,
                        field=pending.target.key,
                        rule=pending.spec.name,
                    )
                    outcome = Outcome.fail(f"Validation error for rule {pending.spec.name}")
                elif isinstance(outcome, BaseException):
                    raise outcome
                self._validator._resume(pending, outcome, self)

        if self.state == ValidationState.PENDING:
            self.state = ValidationState.COMPLETED
        return self

    def _settle(self) -> None:
        self.state = ValidationState.PENDING if self._pending else ValidationState.COMPLETED

    def __bool__(self) -> bool:
        return self.valid

    def __repr__(self) -> str:
        return f"ValidationResult(state={self.state.value!r}, errors={self.errors.flatten()!r})"


class Validator:
    """
    Rule-string validator.

    Args:
        rules: Field name (``tags[]`` for repeated fields) to rule string
        messages: Field name to ``{rule: template, "label": label}``
        selector: Match fields by "name" or "id"
        registry: Rule registry (built-in rules by default)
        config: Configuration (process default by default)
        logger: Logger for tracing and warnings
    """

    def __init__(
        self,
        rules: Mapping[str, Any],
        messages: Optional[Mapping[str, Mapping[str, Any]]] = None,
        selector: Optional[str] = None,
        registry: Optional[RuleRegistry] = None,
        config: Optional[Config] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.rules = dict(rules) if isinstance(rules, Mapping) else rules
        self.messages = dict(messages) if isinstance(messages, Mapping) else messages or {}
        self.config = config or get_config()
        self.selector = selector or self.config.get("validation.selector", "name")
        self.registry = registry or default_registry
        self.logger = logger or get_logger("formrules.validation")

        if self.config.get_bool("validation.debug"):
            # Own copy so the shared logger keeps its level
            self.logger = self.logger.with_context().set_level(LogLevel.DEBUG)

    def validate(self, source: Union[FieldValueSource, Mapping[str, Any], None]) -> ValidationResult:
        """
        Validate synchronously.

        Never raises: configuration problems end the run in the
        ``failed`` state with a single ``_global`` error.
        """
        result = ValidationResult(self)
        result.state = ValidationState.RUNNING
        try:
            if not isinstance(self.rules, Mapping):
                raise TypeError("Rules must map field names to rule strings")
            if not isinstance(self.messages, Mapping):
                raise TypeError("Messages must map field names to rule templates")
            self.logger.debug("Validation started", fields=len(self.rules))
            if source is None:
                raise ValueError("No value source provided")
            if not isinstance(source, FieldValueSource):
                source = MappingValueSource(source)

            for field_name, spec in self.rules.items():
                self._validate_field(field_name, spec, source, result)
        except Exception as e:
            self.logger.error("Validation system error", exception=e)
            result.errors.clear()
            result.errors.add(GLOBAL_KEY, f"Validation system error: {e}")
            result._pending.clear()
            result.state = ValidationState.FAILED
            return result

        result._settle()
        self.logger.debug(
            "Validation finished",
            state=result.state.value,
            errors=len(result.errors),
        )
        return result

    async def validate_async(
        self,
        source: Union[FieldValueSource, Mapping[str, Any], None],
    ) -> ValidationResult:
        """Validate and await every pending check."""
        result = self.validate(source)
        return await result.resolve()

    def _targets(self, field_name: str, source: FieldValueSource) -> List[FieldTarget]:
        """Resolve a declared field to the entries it covers."""
        field_messages = self.messages.get(field_name) or {}
        custom_label = field_messages.get("label")

        if field_name.endswith("[]"):
            base = field_name[:-2]
            label = custom_label or format_label(base)
            return [
                FieldTarget(
                    key=f"{base}_{index}",
                    identifier=field_name,
                    name=base,
                    label=f"{label} #{index + 1}",
                    entry=entry,
                    messages=field_messages,
                )
                for index, entry in enumerate(source.find_all(field_name, self.selector))
            ]

        entry = source.find(field_name, self.selector)
        if entry is None:
            return []
        return [
            FieldTarget(
                key=field_name,
                identifier=field_name,
                name=field_name,
                label=custom_label or format_label(field_name),
                entry=entry,
                messages=field_messages,
            )
        ]

    def _validate_field(
        self,
        field_name: str,
        spec: Any,
        source: FieldValueSource,
        result: ValidationResult,
    ) -> None:
        if not isinstance(spec, (str, list, tuple)):
            self.logger.warning(
                "Rules must be a string; field skipped",
                field=field_name,
                rules=type(spec).__name__,
            )
            return

        chain = parse_rules(spec)
        targets = self._targets(field_name, source)
        if not targets:
            self.logger.debug("Field not found; skipped", field=field_name)
            return

        for target in targets:
            ctx = RuleContext(
                field=target.identifier,
                kind=target.entry.kind,
                source=source,
                selector=self.selector,
                config=self.config,
                logger=self.logger,
            )
            self.logger.debug("Validating field", field=target.key, value=target.entry.value)
            self._run_chain(target, chain, ctx, result)

    def _run_chain(
        self,
        target: FieldTarget,
        chain: Sequence[RuleSpec],
        ctx: RuleContext,
        result: ValidationResult,
    ) -> None:
        """Evaluate rules in order until one fails or defers."""
        for position, spec in enumerate(chain):
            outcome = self.registry.dispatch(spec, target.entry.value, ctx)
            self.logger.debug(
                "Rule evaluated",
                field=target.key,
                rule=str(spec),
                value=target.entry.value,
                valid=outcome.valid,
                pending=outcome.is_pending,
            )

            if outcome.is_pending:
                result._pending.append(
                    PendingField(target, spec, outcome, chain[position + 1:], ctx)
                )
                return

            if not outcome.valid:
                self._record(target, spec, outcome, ctx, result)
                return

    def _resume(self, pending: PendingField, outcome: Outcome, result: ValidationResult) -> None:
        self.logger.debug(
            "Deferred rule resolved",
            field=pending.target.key,
            rule=str(pending.spec),
            valid=outcome.valid,
        )
        if outcome.is_pending:
            result._pending.append(
                PendingField(pending.target, pending.spec, outcome, pending.remaining, pending.ctx)
            )
        elif not outcome.valid:
            self._record(pending.target, pending.spec, outcome, pending.ctx, result)
        else:
            self._run_chain(pending.target, pending.remaining, pending.ctx, result)

    def _record(
        self,
        target: FieldTarget,
        spec: RuleSpec,
        outcome: Outcome,
        ctx: RuleContext,
        result: ValidationResult,
    ) -> None:
        message = self.message_for(target, spec, outcome, ctx)
        result.errors.add(target.key, message)
        self.logger.debug("Validation failed", field=target.key, rule=spec.name, error=message)

    def message_for(
        self,
        target: FieldTarget,
        spec: RuleSpec,
        outcome: Outcome,
        ctx: RuleContext,
    ) -> str:
        """Final message for a failed rule."""
        rule = self.registry.get(spec.name)
        default = rule.get_message(spec.parameters) if rule else None
        extra = rule.tokens(spec.parameters, ctx) if rule else {}
        tokens = build_tokens(target.name, target.label, spec.parameters, extra)
        return resolve_message(
            spec.name,
            spec.parameters,
            target.messages,
            outcome.message,
            default,
            tokens,
        )


# Convenience functions

def validate(
    source: Union[FieldValueSource, Mapping[str, Any], None],
    rules: Mapping[str, Any],
    messages: Optional[Mapping[str, Mapping[str, Any]]] = None,
    selector: Optional[str] = None,
    **kwargs: Any,
) -> ValidationResult:
    """
    Validate a value source against rule strings.

    Example:
        result = validate({"email": ""}, {"email": "required|email"})
        result.valid          # False
        result.get_errors()   # {"email": "The Email field is required."}
    """
    return Validator(rules, messages, selector, **kwargs).validate(source)


async def validate_async(
    source: Union[FieldValueSource, Mapping[str, Any], None],
    rules: Mapping[str, Any],
    messages: Optional[Mapping[str, Mapping[str, Any]]] = None,
    selector: Optional[str] = None,
    **kwargs: Any,
) -> ValidationResult:
    """Like `validate`, awaiting asynchronous rules before returning."""
    return await Validator(rules, messages, selector, **kwargs).validate_async(source)


async def validate_or_fail(
    source: Union[FieldValueSource, Mapping[str, Any], None],
    rules: Mapping[str, Any],
    messages: Optional[Mapping[str, Mapping[str, Any]]] = None,
    selector: Optional[str] = None,
    **kwargs: Any,
) -> ValidationResult:
    """
    Validate and raise on failure.

    Example:
        try:
            await validate_or_fail(payload, {"email": "required|email"})
        except ValidationError as e:
            return {"errors": e.errors}
    """
    result = await validate_async(source, rules, messages, selector, **kwargs)
    result.raise_if_invalid()
    return result


def get_errors(
    errors: ErrorStore,
    flatten: bool = True,
) -> Union[Dict[str, str], Dict[str, List[str]]]:
    """
    Errors of a run.

    Args:
        errors: Store from a ValidationResult
        flatten: First message per field (True) or every message

    Returns:
        Field to message(s)
    """
    if flatten:
        return errors.flatten()
    return errors.to_dict()


def set_debug(enabled: bool = True) -> None:
    """
    Toggle validation tracing.

    Logs every field, rule, value and outcome at DEBUG. Has no effect
    on validation results.
    """
    get_logger("formrules.validation").set_level(LogLevel.DEBUG if enabled else LogLevel.WARNING)
