"""
FormRules Core
==============

Configuration shared by the validation engine and the CLI.
"""

from formrules.core.config import Config, ConfigSource, get_config, reset_config

__all__ = [
    "Config",
    "ConfigSource",
    "get_config",
    "reset_config",
]
