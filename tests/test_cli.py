"""CLI smoke tests using typer's CliRunner."""

import json
import logging

import pytest
from typer.testing import CliRunner

from specimen import __version__, config
from specimen.cli.app import app
from specimen.cli.commands.generate import parse_overrides, resolve_target
from specimen.errors import SettingsError

from sample_types import Person

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """generate reconfigures logging; undo it after each test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    specimen_level = logging.getLogger("specimen").level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("specimen").setLevel(specimen_level)


def _json(result) -> dict:
    return json.loads(result.stdout)


class TestGenerateCommand:
    """Tests for the generate command."""

    def test_generate_json(self):
        result = runner.invoke(app, ["--json", "generate", "sample_types:Person", "-n", "2", "--seed", "5"])
        assert result.exit_code == 0
        data = _json(result)
        assert data["status"] == "success"
        assert data["seed"] == 5
        assert data["count"] == 2
        assert len(data["values"]) == 2
        assert set(data["values"][0]) == {"name", "age", "email", "address", "phones", "tags", "nickname"}

    def test_seed_reproduces_output(self):
        args = ["--json", "generate", "sample_types:Account", "--seed", "21"]
        assert _json(runner.invoke(app, args))["values"] == _json(runner.invoke(app, args))["values"]

    def test_human_output(self):
        result = runner.invoke(app, ["generate", "sample_types:Person", "--seed", "3"])
        assert result.exit_code == 0
        assert "Generated 1 x sample_types:Person (seed=3)" in result.output

    def test_settings_overrides(self):
        result = runner.invoke(
            app, ["--json", "generate", "sample_types:Person", "--set", "max_depth=1", "--set", "seed=9"]
        )
        assert result.exit_code == 0
        data = _json(result)
        assert data["seed"] == 9
        assert data["values"][0]["address"] is None

    def test_settings_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("collection_min_size: 1\ncollection_max_size: 1\n")
        result = runner.invoke(app, ["--json", "generate", "sample_types:Person", "--settings", str(path)])
        assert result.exit_code == 0
        assert len(_json(result)["values"][0]["phones"]) == 1

    def test_unknown_target(self):
        result = runner.invoke(app, ["generate", "sample_types:Nope"])
        assert result.exit_code == 3
        result = runner.invoke(app, ["generate", "no_such_module_xyz:Thing"])
        assert result.exit_code == 3
        result = runner.invoke(app, ["generate", "missing-colon"])
        assert result.exit_code == 3

    def test_invalid_settings(self):
        result = runner.invoke(app, ["generate", "sample_types:Person", "--set", "max_depth=deep"])
        assert result.exit_code == 2
        result = runner.invoke(app, ["generate", "sample_types:Person", "--set", "max_depth"])
        assert result.exit_code == 2

    def test_inconsistent_settings(self):
        result = runner.invoke(
            app, ["generate", "sample_types:Person", "--set", "int_min=50", "--set", "int_max=10"]
        )
        assert result.exit_code == 2

    def test_generation_error_reports_seed(self):
        result = runner.invoke(app, ["--json", "generate", "sample_types:Drawing", "--seed", "17"])
        assert result.exit_code == 1
        data = _json(result)
        assert data["status"] == "error"
        assert data["errors"][0]["seed"] == 17
        assert "abstract" in data["errors"][0]["message"]


class TestHelpers:
    def test_resolve_target(self):
        assert resolve_target("sample_types:Person") is Person
        with pytest.raises(ValueError):
            resolve_target("sample_types")

    def test_parse_overrides(self):
        assert parse_overrides(["max_depth=3", " int_min = 2 "]).as_dict() == {"max_depth": 3, "int_min": 2}
        with pytest.raises(SettingsError):
            parse_overrides(["max_depth"])


class TestSettingsCommand:
    """Tests for the settings command."""

    def test_settings_show(self):
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "max_depth" in result.output
        assert "not created yet" in result.output

    def test_settings_set_and_show(self):
        result = runner.invoke(app, ["settings", "set", "max_depth", "4"])
        assert result.exit_code == 0
        assert json.loads(config.CONFIG_FILE.read_text()) == {"max_depth": 4}

        data = _json(runner.invoke(app, ["--json", "settings", "show"]))
        row = next(r for r in data["settings"] if r["Key"] == "max_depth")
        assert row == {"Key": "max_depth", "Value": "4", "Source": "custom"}
        assert data["config_file"] == str(config.CONFIG_FILE)

    def test_settings_set_invalid(self):
        result = runner.invoke(app, ["settings", "set", "max_depth", "deep"])
        assert result.exit_code == 2
        assert "Invalid setting" in result.output
        result = runner.invoke(app, ["settings", "set", "colour", "blue"])
        assert result.exit_code == 2

    def test_settings_set_missing_args(self):
        result = runner.invoke(app, ["settings", "set"])
        assert result.exit_code == 2

    def test_settings_reset(self):
        runner.invoke(app, ["settings", "set", "max_depth", "4"])
        result = runner.invoke(app, ["settings", "reset"])
        assert result.exit_code == 0
        assert not config.CONFIG_FILE.exists()
        assert config.get_settings().max_depth == 8

    def test_settings_unknown_action(self):
        result = runner.invoke(app, ["settings", "unknown_action"])
        assert result.exit_code == 2
        assert "Unknown action" in result.output


class TestVersionFlag:
    """Test the --version flag."""

    def test_version_output(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"specimen {__version__}" in result.output
