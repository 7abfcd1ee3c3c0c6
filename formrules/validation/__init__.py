"""
FormRules Validation
====================

Declarative rule-string validation.

Features:
- Pipe-delimited rule strings ("required|min:3|email")
- Over fifty built-in rules with Laravel-style semantics
- Cross-field rules (same, confirmed, required_if, gt, ...)
- Repeated fields ("skills[]") validated element by element
- Message overrides, labels and placeholder substitution
- Asynchronous image dimension checks
"""

from formrules.validation.messages import format_label, substitute
from formrules.validation.parser import RuleSpec, format_rules, parse_rule, parse_rules
from formrules.validation.render import render_errors
from formrules.validation.rules import (
    CallableRule,
    Outcome,
    Rule,
    RuleContext,
    RuleRegistry,
    default_registry,
)
from formrules.validation.sources import FieldEntry, FieldValueSource, MappingValueSource
from formrules.validation.validator import (
    ErrorStore,
    ValidationError,
    ValidationResult,
    ValidationState,
    Validator,
    get_errors,
    set_debug,
    validate,
    validate_async,
    validate_or_fail,
)
from formrules.validation.values import (
    ABSENT,
    Absent,
    FieldKind,
    FieldValue,
    FileInfo,
    FileSet,
    Multi,
    Scalar,
    is_numeric_value,
    to_field_value,
)

__all__ = [
    # Orchestrator
    "Validator",
    "ValidationError",
    "ValidationResult",
    "ValidationState",
    "ErrorStore",
    "validate",
    "validate_async",
    "validate_or_fail",
    "get_errors",
    "set_debug",
    "render_errors",
    # Rules
    "Rule",
    "CallableRule",
    "Outcome",
    "RuleContext",
    "RuleRegistry",
    "default_registry",
    # Parsing and messages
    "RuleSpec",
    "parse_rule",
    "parse_rules",
    "format_rules",
    "format_label",
    "substitute",
    # Values
    "FieldKind",
    "FieldValue",
    "FileInfo",
    "Absent",
    "ABSENT",
    "Scalar",
    "Multi",
    "FileSet",
    "to_field_value",
    "is_numeric_value",
    # Sources
    "FieldEntry",
    "FieldValueSource",
    "MappingValueSource",
]
