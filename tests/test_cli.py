"""Tests for the command line interface."""

import orjson
import pytest

from formrules.cli.main import EXIT_INVALID, EXIT_USAGE, EXIT_VALID, cli, decode_values
from formrules.validation.values import FileInfo


@pytest.fixture
def write_json(tmp_path):
    """Write an object to a JSON file and return its path."""

    def _write(name, data):
        path = tmp_path / name
        path.write_bytes(orjson.dumps(data))
        return str(path)

    return _write


@pytest.fixture
def rules_file(write_json):
    return write_json("rules.json", {"email": "required|email", "age": "required|integer|between:18,65"})


class TestCheck:
    """The check command."""

    def test_valid(self, write_json, rules_file, capsys):
        data = write_json("data.json", {"email": "jane@example.com", "age": 30})

        assert cli(["check", data, "--rules", rules_file]) == EXIT_VALID
        assert capsys.readouterr().out.strip() == "OK"

    def test_invalid_text(self, write_json, rules_file, capsys):
        data = write_json("data.json", {"email": "", "age": "70"})

        assert cli(["check", data, "--rules", rules_file]) == EXIT_INVALID
        assert capsys.readouterr().out.splitlines() == [
            "Validation Errors:",
            "  - The Email field is required.",
            "  - The Age field must be between 18 and 65.",
        ]

    def test_invalid_multi_mode(self, write_json, rules_file, capsys):
        data = write_json("data.json", {"email": "nope", "age": 20})

        assert cli(["check", data, "--rules", rules_file, "--mode", "multi"]) == EXIT_INVALID
        assert capsys.readouterr().out.strip() == "Error: The Email field must be a valid email address."

    def test_json_format(self, write_json, rules_file, capsys):
        data = write_json("data.json", {"email": "", "age": 30})

        assert cli(["check", data, "--rules", rules_file, "--format", "json"]) == EXIT_INVALID
        assert orjson.loads(capsys.readouterr().out) == {"email": "The Email field is required."}

    def test_messages_file(self, write_json, rules_file, capsys):
        data = write_json("data.json", {"email": "", "age": 30})
        messages = write_json("messages.json", {"email": {"required": "Tell us your :label."}})

        cli(["check", data, "--rules", rules_file, "--messages", messages, "--mode", "multi"])
        assert capsys.readouterr().out.strip() == "Error: Tell us your Email."

    def test_kinds_file(self, write_json, capsys):
        data = write_json("data.json", {"start": "08:30"})
        rules = write_json("rules.json", {"start": "between:09:00,17:00"})
        kinds = write_json("kinds.json", {"start": "time"})

        assert cli(["check", data, "--rules", rules, "--kinds", kinds]) == EXIT_INVALID
        assert "between 09:00 and 17:00" in capsys.readouterr().out

    def test_image_on_disk(self, write_json, tmp_path, image_data, capsys):
        photo = tmp_path / "photo.png"
        photo.write_bytes(image_data(64, 48))
        data = write_json("data.json", {"avatar": {"path": str(photo)}})
        rules = write_json("rules.json", {"avatar": "required|image|dimensions:max_width=32"})

        assert cli(["check", data, "--rules", rules, "--format", "json"]) == EXIT_INVALID
        assert orjson.loads(capsys.readouterr().out) == {
            "avatar": "The Avatar has invalid image dimensions.",
        }

    def test_debug_traces_to_stderr(self, write_json, rules_file, capsys):
        data = write_json("data.json", {"email": "jane@example.com", "age": 30})

        assert cli(["check", data, "--rules", rules_file, "--debug"]) == EXIT_VALID
        captured = capsys.readouterr()
        assert captured.out.strip() == "OK"
        assert "Rule evaluated" in captured.err

    def test_trace_written_to_configured_log_file(self, write_json, rules_file, tmp_path, capsys):
        data = write_json("data.json", {"email": "", "age": 30})
        log_path = tmp_path / "logs" / "trace.jsonl"
        config = write_json("config.json", {"logging": {"file": str(log_path), "format": "json"}})

        assert cli(["--config", config, "check", data, "--rules", rules_file, "--debug"]) == EXIT_INVALID
        capsys.readouterr()

        records = [orjson.loads(line) for line in log_path.read_text().splitlines()]
        failed = [r for r in records if r["message"] == "Validation failed"]
        assert failed[0]["context"] == {
            "field": "email",
            "rule": "required",
            "error": "The Email field is required.",
        }

    def test_selector_id(self, write_json, capsys):
        data = write_json("data.json", {"email": ""})
        rules = write_json("rules.json", {"email": "required"})

        assert cli(["check", data, "--rules", rules, "--selector", "id"]) == EXIT_INVALID


class TestInputErrors:
    """Unreadable input exits with a usage error."""

    def test_missing_data_file(self, rules_file, tmp_path, capsys):
        code = cli(["check", str(tmp_path / "nope.json"), "--rules", rules_file])

        assert code == EXIT_USAGE
        assert capsys.readouterr().err.startswith("Error: Cannot read")

    def test_invalid_json(self, rules_file, tmp_path, capsys):
        data = tmp_path / "data.json"
        data.write_text("{not json")

        assert cli(["check", str(data), "--rules", rules_file]) == EXIT_USAGE
        assert "Invalid JSON" in capsys.readouterr().err

    def test_rules_must_be_object(self, write_json, capsys):
        data = write_json("data.json", {})
        rules = write_json("rules.json", ["required"])

        assert cli(["check", data, "--rules", rules]) == EXIT_USAGE
        assert "must contain a JSON object" in capsys.readouterr().err

    def test_bad_config(self, write_json, rules_file, tmp_path, capsys):
        data = write_json("data.json", {})
        config = tmp_path / "config.json"
        config.write_text("[]")

        assert cli(["--config", str(config), "check", data, "--rules", rules_file]) == EXIT_USAGE
        assert "Invalid configuration file" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert cli([]) == EXIT_USAGE
        assert "usage: formrules" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli(["--version"])
        assert excinfo.value.code == 0
        assert "FormRules" in capsys.readouterr().out


class TestRulesCommand:
    """The rules command."""

    def test_lists_rules(self, capsys):
        assert cli(["rules"]) == EXIT_VALID
        names = capsys.readouterr().out.split()
        assert "required" in names
        assert names == sorted(names)


class TestDecodeValues:
    """JSON file descriptors."""

    def test_descriptors(self):
        decoded = decode_values({
            "cv": {"name": "cv.pdf", "size": 10, "type": "application/pdf"},
            "photos": [{"name": "a.png"}, {"name": "b.png"}],
            "tags": ["a", "b"],
            "name": "Jane",
        })

        assert decoded["cv"] == [FileInfo(name="cv.pdf", size=10, mime_type="application/pdf")]
        assert [f.name for f in decoded["photos"]] == ["a.png", "b.png"]
        assert decoded["tags"] == ["a", "b"]
        assert decoded["name"] == "Jane"
