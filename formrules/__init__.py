"""
FormRules - Declarative Rule-String Validation
==============================================

Validate named values against Laravel-style rule strings such as
``"required|between:3,20|email"`` and get back one message per field.

Features:
---------
- Rule strings parsed into ordered, short-circuiting chains
- Shape-aware rules for text, numbers, lists and files
- Cross-field rules resolved through an abstract value source
- Custom messages with :label/:param[0]-style placeholders
- Asynchronous image dimension checks
- Layered configuration and structured logging
- `formrules check` command line tool

Quick Start:
    from formrules import validate

    result = validate(
        {"email": "", "age": "70"},
        {"email": "required|email", "age": "required|integer|between:18,65"},
    )
    result.get_errors()
    # {"email": "The Email field is required.",
    #  "age": "The Age field must be between 18 and 65."}
"""

from __future__ import annotations

__version__ = "1.0.0"
__license__ = "MIT"

from typing import TYPE_CHECKING

from formrules.validation.validator import (
    ValidationError,
    ValidationResult,
    Validator,
    get_errors,
    set_debug,
    validate,
    validate_async,
    validate_or_fail,
)

if TYPE_CHECKING:
    from formrules.core.config import Config
    from formrules.utils.logger import Logger
    from formrules.validation.render import render_errors
    from formrules.validation.rules import Outcome, Rule, RuleRegistry
    from formrules.validation.sources import FieldValueSource, MappingValueSource
    from formrules.validation.values import FieldKind, FileInfo


def __getattr__(name: str):
    """Lazy loading of secondary components."""
    _imports = {
        # Rules
        "Rule": "formrules.validation.rules",
        "Outcome": "formrules.validation.rules",
        "RuleRegistry": "formrules.validation.rules",
        "default_registry": "formrules.validation.rules",
        # Sources and values
        "FieldValueSource": "formrules.validation.sources",
        "MappingValueSource": "formrules.validation.sources",
        "FieldKind": "formrules.validation.values",
        "FileInfo": "formrules.validation.values",
        # Rendering
        "render_errors": "formrules.validation.render",
        # Configuration and logging
        "Config": "formrules.core.config",
        "Logger": "formrules.utils.logger",
        "configure_logging": "formrules.utils.logger",
    }

    if name in _imports:
        import importlib
        module = importlib.import_module(_imports[name])
        return getattr(module, name)

    raise AttributeError(f"module 'formrules' has no attribute '{name}'")


__all__ = [
    # Metadata
    "__version__",
    "__license__",
    # Core (always loaded)
    "Validator",
    "ValidationError",
    "ValidationResult",
    "validate",
    "validate_async",
    "validate_or_fail",
    "get_errors",
    "set_debug",
    # Lazy
    "Rule",
    "Outcome",
    "RuleRegistry",
    "default_registry",
    "FieldValueSource",
    "MappingValueSource",
    "FieldKind",
    "FileInfo",
    "render_errors",
    "Config",
    "Logger",
    "configure_logging",
]
