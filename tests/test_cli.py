"""Tests for varstore CLI commands."""

import json

import pytest
import yaml
from click.testing import CliRunner

from varstore.cli.main import cli
from varstore.config import reset_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def state_file(tmp_path):
    path = tmp_path / "state.yaml"
    path.write_text(
        "employee:\n"
        "  name:\n"
        "    username: sangupta\n"
        "list: [1, 2, 3, 4, 5]\n"
        "a: 2\n"
        "b: 4\n"
    )
    return path


class TestEval:
    def test_literal_expression(self, runner):
        result = runner.invoke(cli, ["eval", "1 + 2"])
        assert result.exit_code == 0
        assert result.output.strip() == "3"

    def test_with_state_file(self, runner, state_file):
        result = runner.invoke(cli, ["eval", "employee.name.username", "--state", str(state_file)])
        assert result.exit_code == 0
        assert json.loads(result.output) == "sangupta"

    def test_list_result_is_json(self, runner, state_file):
        result = runner.invoke(cli, ["eval", "[a, b, list[4]]", "--state", str(state_file)])
        assert result.exit_code == 0
        assert json.loads(result.output) == [2, 4, 5]

    def test_set_values(self, runner):
        result = runner.invoke(
            cli, ["eval", "count * 2 + items.length", "--set", "count=3", "--set", "items=[1, 2]"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "8"

    def test_set_overrides_state(self, runner, state_file):
        result = runner.invoke(
            cli, ["eval", "a * b", "--state", str(state_file), "--set", "a=10"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "40"

    def test_set_nested_path(self, runner):
        result = runner.invoke(cli, ["eval", "user.name", "--set", "user.name=ada"])
        assert result.exit_code == 0
        assert json.loads(result.output) == "ada"

    def test_unset_result(self, runner):
        result = runner.invoke(cli, ["eval", "missing"])
        assert result.exit_code == 0
        assert result.output.strip() == "undefined"

    def test_null_result(self, runner):
        result = runner.invoke(cli, ["eval", "null"])
        assert result.exit_code == 0
        assert result.output.strip() == "null"

    def test_parse_error(self, runner):
        result = runner.invoke(cli, ["eval", "(a"])
        assert result.exit_code == 1
        assert "Error" in result.output
        assert "Unclosed (" in result.output

    def test_evaluation_error(self, runner):
        result = runner.invoke(cli, ["eval", "missing.x"])
        assert result.exit_code == 1
        assert "Cannot read property 'x' of undefined" in result.output

    def test_division_by_zero_prints_infinity(self, runner):
        result = runner.invoke(cli, ["eval", "1 / 0"])
        assert result.exit_code == 0
        assert result.output.strip() == "Infinity"

    def test_bad_set_syntax(self, runner):
        result = runner.invoke(cli, ["eval", "a", "--set", "novalue"])
        assert result.exit_code != 0
        assert "KEY=VALUE" in result.output

    def test_invalid_state_file(self, runner, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        result = runner.invoke(cli, ["eval", "a", "--state", str(path)])
        assert result.exit_code == 1
        assert "must contain a mapping" in result.output

    def test_missing_state_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["eval", "a", "--state", str(tmp_path / "nope.yaml")])
        assert result.exit_code != 0


class TestParse:
    def test_prints_ast_and_identifiers(self, runner):
        result = runner.invoke(cli, ["parse", "price * qty"])
        assert result.exit_code == 0

        document = yaml.safe_load(result.output)
        assert document["ast"]["type"] == "BinaryExpression"
        assert document["ast"]["operator"] == "*"
        assert document["identifiers"] == ["price", "qty"]

    def test_member_property_not_listed(self, runner):
        result = runner.invoke(cli, ["parse", "order.total > limit"])
        document = yaml.safe_load(result.output)
        assert document["identifiers"] == ["limit", "order"]

    def test_parse_error(self, runner):
        result = runner.invoke(cli, ["parse", "a ? b"])
        assert result.exit_code == 1
        assert "Expected :" in result.output


class TestLogLevel:
    def test_log_level_option(self, runner):
        result = runner.invoke(cli, ["--log-level", "debug", "eval", "1"])
        assert result.exit_code == 0
        assert "1" in result.output
