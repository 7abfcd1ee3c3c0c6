"""
FormRules CLI Main Module
=========================

Command line front end for the validation engine.

Commands:
- check: validate a JSON document against a JSON rule map
- rules: list registered rule names
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import orjson

from formrules import __version__
from formrules.core.config import Config
from formrules.utils.logger import configure_logging
from formrules.validation.render import FORMATS, MODES, render_errors
from formrules.validation.rules import default_registry
from formrules.validation.sources import SELECTORS, MappingValueSource
from formrules.validation.validator import Validator, set_debug
from formrules.validation.values import FileInfo

EXIT_VALID = 0
EXIT_INVALID = 1
EXIT_USAGE = 2


class InputError(Exception):
    """Unreadable or malformed command input."""


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="formrules",
        description="Validate JSON data against rule strings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  formrules check data.json --rules rules.json
  formrules check data.json --rules rules.json --format json
  formrules check form.json --rules rules.json --kinds kinds.json --debug
  formrules rules
        """,
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"FormRules {__version__}",
    )
    parser.add_argument(
        "--config",
        help="JSON configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Check command
    check_parser = subparsers.add_parser(
        "check",
        help="Validate a JSON document",
    )
    check_parser.add_argument(
        "data",
        help="JSON file with field values",
    )
    check_parser.add_argument(
        "--rules",
        required=True,
        help="JSON file mapping field names to rule strings",
    )
    check_parser.add_argument(
        "--messages",
        help="JSON file with per-field message overrides",
    )
    check_parser.add_argument(
        "--kinds",
        help="JSON file mapping field names to field kinds",
    )
    check_parser.add_argument(
        "--selector",
        choices=SELECTORS,
        help="Match fields by name or id",
    )
    check_parser.add_argument(
        "--format",
        choices=FORMATS,
        default="text",
        help="Output format",
    )
    check_parser.add_argument(
        "--mode",
        choices=MODES,
        default="single",
        help="Text layout: one block or one line per error",
    )
    check_parser.add_argument(
        "--debug",
        action="store_true",
        help="Trace every rule evaluation to stderr",
    )

    # Rules command
    subparsers.add_parser(
        "rules",
        help="List registered rules",
    )

    return parser


def load_json(path: str) -> Any:
    """Read a JSON file."""
    try:
        return orjson.loads(Path(path).read_bytes())
    except OSError as e:
        raise InputError(f"Cannot read {path}: {e.strerror or e}") from e
    except orjson.JSONDecodeError as e:
        raise InputError(f"Invalid JSON in {path}: {e}") from e


def load_mapping(path: Optional[str], what: str) -> Dict[str, Any]:
    if not path:
        return {}
    data = load_json(path)
    if not isinstance(data, dict):
        raise InputError(f"{what} file must contain a JSON object: {path}")
    return data


def _is_file_descriptor(value: Any) -> bool:
    return isinstance(value, dict) and ("path" in value or "name" in value)


def to_file(value: Mapping[str, Any]) -> FileInfo:
    """
    Build a FileInfo from a JSON descriptor.

    Descriptors either point at a file on disk (``{"path": ...}``) or
    describe one (``{"name": ..., "size": ..., "type": ...}``).
    """
    if "path" in value:
        try:
            return FileInfo.from_path(value["path"], mime_type=value.get("type"))
        except OSError as e:
            raise InputError(f"Cannot read {value['path']}: {e.strerror or e}") from e
    return FileInfo(
        name=str(value["name"]),
        size=int(value.get("size", 0)),
        mime_type=str(value.get("type", "")),
    )


def decode_values(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Replace file descriptors in a JSON document with FileInfo objects."""
    decoded: Dict[str, Any] = {}
    for name, value in data.items():
        if _is_file_descriptor(value):
            decoded[name] = [to_file(value)]
        elif isinstance(value, list) and value and all(_is_file_descriptor(v) for v in value):
            decoded[name] = [to_file(v) for v in value]
        else:
            decoded[name] = value
    return decoded


def cli(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code: 0 valid, 1 invalid, 2 usage or input error
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return EXIT_USAGE

    handlers = {
        "check": handle_check,
        "rules": handle_rules,
    }

    handler = handlers.get(parsed.command)
    if handler is None:
        parser.print_help()
        return EXIT_USAGE

    try:
        return handler(parsed)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130


def _load_config(path: Optional[str]) -> Config:
    config = Config.from_defaults()
    if path:
        try:
            config.load_file(path)
        except OSError as e:
            raise InputError(f"Cannot read {path}: {e.strerror or e}") from e
        except (orjson.JSONDecodeError, ValueError) as e:
            raise InputError(f"Invalid configuration file {path}: {e}") from e
    return config


def handle_check(args: argparse.Namespace) -> int:
    """Handle check command."""
    config = _load_config(args.config)

    debug = args.debug or config.get_bool("validation.debug")
    configure_logging(
        level="DEBUG" if debug else config.get("logging.level", "INFO"),
        format=config.get("logging.format", "text"),
        log_file=config.get("logging.file"),
    )
    set_debug(debug)

    data = load_mapping(args.data, "Data")
    rules = load_mapping(args.rules, "Rules")
    messages = load_mapping(args.messages, "Messages")
    kinds = load_mapping(args.kinds, "Kinds")

    source = MappingValueSource(decode_values(data), kinds=kinds)
    validator = Validator(rules, messages, selector=args.selector, config=config)
    result = asyncio.run(validator.validate_async(source))

    if args.format == "json":
        print(render_errors(result.errors, fmt="json"))
    elif result.valid:
        print("OK")
    else:
        print(render_errors(result.errors, mode=args.mode))

    return EXIT_VALID if result.valid else EXIT_INVALID


def handle_rules(args: argparse.Namespace) -> int:
    """Handle rules command."""
    for name in default_registry.names():
        print(name)
    return EXIT_VALID


def main() -> None:
    """Main entry point."""
    sys.exit(cli())


if __name__ == "__main__":
    main()
