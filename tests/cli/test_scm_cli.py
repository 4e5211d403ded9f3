"""Tests for SCM reasoning CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from causalcore.cli import cli
from causalcore.persistence import AuditLogger
from causalcore.registry import InMemoryModelRegistry

OVERRIDE_RATIONALE = "Reviewed the Tar -> Cancer sign change with the data team"


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def workspace(tmp_path: Path) -> dict:
    """Explicit workspace locations so nothing touches the home directory."""
    return {
        "config": tmp_path / "absent-config.json",
        "registry": tmp_path / "models",
        "audit": tmp_path / "audit",
    }


def write_graph(path: Path, outcome_sign: str = "positive") -> Path:
    path.write_text(
        json.dumps(
            {
                "nodes": ["Confounder", "Treatment", "Outcome"],
                "edges": [
                    {"from": "Confounder", "to": "Treatment", "sign": "positive"},
                    {"from": "Confounder", "to": "Outcome", "sign": "positive"},
                    {"from": "Treatment", "to": "Outcome", "sign": outcome_sign},
                ],
            }
        )
    )
    return path


@pytest.fixture
def graph_file(tmp_path: Path) -> Path:
    return write_graph(tmp_path / "graph.json")


@pytest.fixture
def stored_registry(workspace, smoking_model, smoking_versions) -> Path:
    InMemoryModelRegistry(directory=workspace["registry"]).register(
        smoking_model, smoking_versions
    )
    return workspace["registry"]


class TestIdentify:
    def test_no_controls_is_association_only(self, runner, graph_file):
        result = runner.invoke(
            cli,
            ["scm", "identify", str(graph_file), "-t", "Treatment", "-o", "Outcome", "--json"],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["allowed_output_class"] == "association_only"

    def test_adjusted_confounder_is_supported(self, runner, graph_file):
        result = runner.invoke(
            cli,
            [
                "scm",
                "identify",
                str(graph_file),
                "-t",
                "Treatment",
                "-o",
                "Outcome",
                "--adjust",
                "Confounder",
                "--json",
            ],
        )

        payload = json.loads(result.stdout)
        assert payload["allowed_output_class"] == "intervention_supported"
        assert payload["identifiability"]["required_confounders"] == ["Confounder"]

    def test_missing_file_reports_json_error(self, runner, tmp_path):
        result = runner.invoke(
            cli,
            [
                "scm",
                "identify",
                str(tmp_path / "absent.json"),
                "-t",
                "Treatment",
                "-o",
                "Outcome",
                "--json",
            ],
        )

        assert result.exit_code == 1
        payload = json.loads(result.stdout)
        assert payload["success"] is False
        assert payload["error"]["code"] == "INVALID_CLAIM"

    def test_missing_file_prints_recovery_suggestion(self, runner, tmp_path):
        result = runner.invoke(
            cli,
            ["scm", "identify", str(tmp_path / "absent.json"), "-t", "Treatment", "-o", "Outcome"],
        )

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Suggestion:" in result.output


class TestTrace:
    def test_trace_without_recording(self, runner, graph_file, workspace):
        result = runner.invoke(
            cli,
            [
                "scm",
                "trace",
                str(graph_file),
                "--do",
                "Treatment=1",
                "-o",
                "Outcome",
                "--observed",
                "Treatment=0",
                "--observed",
                "Outcome=10",
                "--no-record",
                "--config",
                str(workspace["config"]),
                "--json",
            ],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["trace"]["result"]["counterfactualOutcome"] == 11.0
        assert payload["trace"]["modelRef"]["modelKey"] == "graph"
        assert payload["traceRef"]["persisted"] is False

    def test_recorded_trace_lands_in_audit_trail(self, runner, graph_file, workspace):
        result = runner.invoke(
            cli,
            [
                "scm",
                "trace",
                str(graph_file),
                "--do",
                "Treatment=1",
                "-o",
                "Outcome",
                "--config",
                str(workspace["config"]),
                "--audit-dir",
                str(workspace["audit"]),
                "--json",
            ],
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["traceRef"]["persisted"] is True
        audit = AuditLogger(output_dir=workspace["audit"])
        assert len(list(audit.iter_events())) == 1

        verify = runner.invoke(
            cli,
            [
                "scm",
                "audit-verify",
                "--audit-dir",
                str(workspace["audit"]),
                "--config",
                str(workspace["config"]),
            ],
        )
        assert verify.exit_code == 0
        assert "Audit chain intact" in verify.output

    def test_unusable_audit_dir_still_emits_trace(self, runner, graph_file, workspace, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")

        result = runner.invoke(
            cli,
            [
                "scm",
                "trace",
                str(graph_file),
                "--do",
                "Treatment=1",
                "-o",
                "Outcome",
                "--config",
                str(workspace["config"]),
                "--audit-dir",
                str(blocker / "audit"),
                "--json",
            ],
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["trace"]["result"]["delta"] == 1.0
        assert payload["traceRef"]["persisted"] is False

    def test_environment_caps_apply(self, runner, graph_file, workspace, monkeypatch):
        monkeypatch.setenv("CAUSALCORE_MAX_NODES", "2")

        result = runner.invoke(
            cli,
            [
                "scm",
                "trace",
                str(graph_file),
                "--do",
                "Treatment=1",
                "-o",
                "Outcome",
                "--no-record",
                "--config",
                str(workspace["config"]),
                "--json",
            ],
        )

        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"]["code"] == "GRAPH_TOO_LARGE"

    def test_malformed_assignment_is_usage_error(self, runner, graph_file, workspace):
        result = runner.invoke(
            cli,
            [
                "scm",
                "trace",
                str(graph_file),
                "--do",
                "Treatment",
                "-o",
                "Outcome",
                "--config",
                str(workspace["config"]),
            ],
        )

        assert result.exit_code == 2


def test_compare_graph_files(runner, tmp_path, workspace):
    left = write_graph(tmp_path / "left.json")
    right = write_graph(tmp_path / "right.json", outcome_sign="negative")

    result = runner.invoke(
        cli,
        [
            "scm",
            "compare",
            str(left),
            str(right),
            "-o",
            "Outcome",
            "--registry-dir",
            str(workspace["registry"]),
            "--config",
            str(workspace["config"]),
            "--json",
        ],
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [atom["type"] for atom in payload["atoms"]] == ["edge_sign"]
    assert payload["atoms"][0]["severity"] == "high"
    assert payload["score"] == pytest.approx(0.3333)


class TestPromote:
    def promote_args(self, workspace, *extra):
        return [
            "scm",
            "promote",
            "smoking",
            "v2",
            "-o",
            "Cancer",
            "--registry-dir",
            str(workspace["registry"]),
            "--audit-dir",
            str(workspace["audit"]),
            "--config",
            str(workspace["config"]),
            "--json",
            *extra,
        ]

    def test_blocked_promotion_exits_with_code_two(self, runner, workspace, stored_registry):
        result = runner.invoke(cli, self.promote_args(workspace))

        assert result.exit_code == 2
        payload = json.loads(result.stdout)
        assert payload["decision"]["blocked"] is True
        assert payload["decision"]["requires_manual_override"] is True
        current = InMemoryModelRegistry.from_directory(stored_registry).get_model_version("smoking")
        assert current.version.version == "v1"

    def test_override_promotes_candidate(self, runner, workspace, stored_registry):
        result = runner.invoke(
            cli,
            self.promote_args(
                workspace, "--approved-by", "alice", "--rationale", OVERRIDE_RATIONALE
            ),
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["promoted"] is True
        current = InMemoryModelRegistry.from_directory(stored_registry).get_model_version("smoking")
        assert current.version.version == "v2"

    def test_unusable_audit_dir_does_not_block_promotion(
        self, runner, workspace, stored_registry, tmp_path
    ):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        workspace = {**workspace, "audit": blocker / "audit"}

        result = runner.invoke(
            cli,
            self.promote_args(
                workspace, "--approved-by", "alice", "--rationale", OVERRIDE_RATIONALE
            ),
        )

        assert result.exit_code == 0
        payload = json.loads(result.stdout)
        assert payload["promoted"] is True
        assert payload["persisted"] is False

    def test_unknown_model_fails(self, runner, workspace, stored_registry):
        args = self.promote_args(workspace)
        args[2] = "weather"

        result = runner.invoke(cli, args)

        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"]["code"] == "MODEL_NOT_FOUND"


def test_autopsy_on_graph_file(runner, tmp_path, workspace):
    chain = tmp_path / "chain.json"
    chain.write_text(
        json.dumps({"nodes": ["A", "B", "C"], "edges": [{"from": "A", "to": "B"}, {"from": "B", "to": "C"}]})
    )

    result = runner.invoke(
        cli,
        [
            "scm",
            "autopsy",
            "--graph",
            str(chain),
            "-o",
            "C",
            "--symptom",
            "late delivery",
            "--audit-dir",
            str(workspace["audit"]),
            "--config",
            str(workspace["config"]),
            "--json",
        ],
    )

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["root_causes"] == ["B", "A"]
    assert payload["symptoms"] == ["late delivery"]


def test_models_lists_registry(runner, workspace, stored_registry):
    result = runner.invoke(
        cli,
        [
            "scm",
            "models",
            "--registry-dir",
            str(stored_registry),
            "--config",
            str(workspace["config"]),
            "--json",
        ],
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [
        {
            "modelKey": "smoking",
            "domain": "health",
            "status": "draft",
            "currentVersion": "v1",
            "versions": ["v1", "v2"],
        }
    ]
