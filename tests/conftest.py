"""Pytest configuration and fixtures for formrules tests."""

import os
from io import BytesIO

import pytest
from PIL import Image

from formrules.core.config import reset_config
from formrules.utils import logger as logger_module
from formrules.validation.parser import parse_rule
from formrules.validation.rules import RuleContext, default_registry
from formrules.validation.sources import MappingValueSource
from formrules.validation.validator import set_debug
from formrules.validation.values import FieldKind, FileInfo, to_field_value


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate tests from FORMRULES_* variables and shared state."""
    for key in list(os.environ):
        if key.startswith("FORMRULES_"):
            monkeypatch.delenv(key)
    reset_config()
    loggers = dict(logger_module._loggers)
    state = {name: (lg._handlers, lg.level) for name, lg in loggers.items()}
    yield
    logger_module._loggers.clear()
    logger_module._loggers.update(loggers)
    for name, (handlers, level) in state.items():
        loggers[name]._handlers = handlers
        loggers[name].level = level
    set_debug(False)
    reset_config()


@pytest.fixture
def make_source():
    """Build a MappingValueSource from keyword data."""

    def _make(data=None, kinds=None, ids=None):
        return MappingValueSource(data or {}, kinds=kinds, ids=ids)

    return _make


@pytest.fixture
def check():
    """
    Evaluate one rule token against a raw value.

    Returns the Outcome. Other fields for cross-field rules go in
    ``others``.
    """

    def _check(token, raw, kind=FieldKind.TEXT, others=None, field="field"):
        source = MappingValueSource(others or {})
        ctx = RuleContext(field=field, kind=kind, source=source)
        return default_registry.dispatch(parse_rule(token), to_field_value(raw, kind), ctx)

    return _check


@pytest.fixture
def passes(check):
    """True if the rule token accepts the value."""

    def _passes(token, raw, **kwargs):
        outcome = check(token, raw, **kwargs)
        assert not outcome.is_pending
        return outcome.valid

    return _passes


def image_bytes(width, height, fmt="PNG"):
    """Encode a blank image of the given size."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color="white").save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_data():
    """Encoder for blank test images."""
    return image_bytes


@pytest.fixture
def png_file():
    """Factory for in-memory PNG FileInfo objects."""

    def _make(width, height, name="photo.png"):
        content = image_bytes(width, height)
        return FileInfo(name=name, size=len(content), mime_type="image/png", content=content)

    return _make
