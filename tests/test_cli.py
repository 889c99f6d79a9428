"""CLI tests using typer's CliRunner.

Tests cover:
  CL1: listing and inspecting skills
  CL2: validate and its exit codes
  CL3: match / disclose with --json output
  CL4: error exit codes
"""

import json

import pytest
from typer.testing import CliRunner

from skillscope.cli import EXIT_CORPUS_ERROR, EXIT_INVALID_ARGUMENT, app

from conftest import write_skill

runner = CliRunner()


def invoke(*args):
    return runner.invoke(app, [str(a) for a in args])


# =============================================================================
# CL1: Skills
# =============================================================================

class TestSkillCommands:
    def test_skills_lists_ids(self, scenario_corpus):
        result = invoke("skills", "--corpus", scenario_corpus)
        assert result.exit_code == 0
        assert "S1" in result.stdout
        assert "S2" in result.stdout

    def test_show_skill(self, scenario_corpus):
        result = invoke("show", "S1", "--corpus", scenario_corpus)
        assert result.exit_code == 0
        assert "R1" in result.stdout
        assert "CRITICAL" in result.stdout

    def test_show_rule_body(self, scenario_corpus):
        result = invoke("show", "S2", "R3", "--corpus", scenario_corpus)
        assert result.exit_code == 0
        assert "Rule three." in result.stdout

    @pytest.mark.parametrize("args", [("nope",), ("S1", "nope")])
    def test_show_unknown(self, scenario_corpus, args):
        result = invoke("show", *args, "--corpus", scenario_corpus)
        assert result.exit_code == EXIT_INVALID_ARGUMENT
        assert "not found" in result.stdout

    def test_config(self):
        result = invoke("config")
        assert result.exit_code == 0
        assert "SKILLSCOPE_DEFAULT_BUDGET" in result.stdout


# =============================================================================
# CL2: Validate
# =============================================================================

class TestValidate:
    def test_clean_corpus(self, scenario_corpus):
        result = invoke("validate", "--corpus", scenario_corpus, "--strict")
        assert result.exit_code == 0
        assert "No diagnostics" in result.stdout

    def test_diagnostics_reported(self, scenario_corpus):
        write_skill(scenario_corpus, "hollow", triggers=["x"])
        result = invoke("validate", "--corpus", scenario_corpus)
        assert result.exit_code == 0
        assert "empty_skill" in result.stdout

    def test_strict_fails_on_diagnostics(self, scenario_corpus):
        write_skill(scenario_corpus, "hollow", triggers=["x"])
        result = invoke("validate", "--corpus", scenario_corpus, "--strict")
        assert result.exit_code == EXIT_CORPUS_ERROR


# =============================================================================
# CL3: Match and disclose
# =============================================================================

class TestMatchAndDisclose:
    def test_match_json(self, scenario_corpus):
        result = invoke("match", "optimize my react build", "--corpus", scenario_corpus, "--json")
        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload == {"matches": [{"skill_id": "S1", "score": 1, "matched_terms": ["react"]}]}

    def test_match_table_no_skill(self, scenario_corpus):
        result = invoke("match", "write a haiku", "--corpus", scenario_corpus)
        assert result.exit_code == 0
        assert "No applicable skill" in result.stdout

    def test_disclose_with_more_json(self, scenario_corpus):
        result = invoke(
            "disclose", "optimize my react build",
            "--corpus", scenario_corpus, "--budget", 120, "--more", 60, "--json",
        )
        assert result.exit_code == 0
        steps = json.loads(result.stdout)["steps"]

        assert [[i["rule_id"] for i in s["items"]] for s in steps] == [["R1"], ["R2"]]
        assert [s["state"] for s in steps] == ["Partial", "Complete"]
        assert steps[0]["session_id"] == steps[1]["session_id"]
        assert "body" not in steps[0]["items"][0]

    def test_disclose_show_body_json(self, scenario_corpus):
        result = invoke(
            "disclose", "react", "--corpus", scenario_corpus, "-b", 1000, "--json", "--show-body",
        )
        items = json.loads(result.stdout)["steps"][0]["items"]
        assert [i["body"] for i in items] == ["Rule one.", "Rule two."]

    def test_disclose_table(self, scenario_corpus):
        result = invoke("disclose", "react", "--corpus", scenario_corpus, "-b", 120)
        assert result.exit_code == 0
        assert "R1" in result.stdout
        assert "Partial" in result.stdout


# =============================================================================
# CL4: Errors
# =============================================================================

class TestErrors:
    def test_missing_corpus(self, tmp_path):
        result = invoke("skills", "--corpus", tmp_path / "missing")
        assert result.exit_code == EXIT_CORPUS_ERROR
        assert "Failed to load corpus" in result.stdout

    def test_empty_corpus(self, corpus_dir):
        result = invoke("validate", "--corpus", corpus_dir)
        assert result.exit_code == EXIT_CORPUS_ERROR

    def test_invalid_budget(self, scenario_corpus):
        result = invoke("disclose", "react", "--corpus", scenario_corpus, "--budget", 0)
        assert result.exit_code == EXIT_INVALID_ARGUMENT
        assert "Invalid argument" in result.stdout

    def test_invalid_more_budget(self, scenario_corpus):
        result = invoke("disclose", "react", "--corpus", scenario_corpus, "-b", 10, "-m", -5)
        assert result.exit_code == EXIT_INVALID_ARGUMENT
