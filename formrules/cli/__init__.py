"""
FormRules CLI
=============

Command-line interface for the validation engine.

Commands:
- check: Validate a JSON document against rule strings
- rules: List registered rule names
"""

from formrules.cli.main import cli, main

__all__ = ["main", "cli"]
