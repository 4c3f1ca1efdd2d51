"""CLI surface tests using typer.testing.CliRunner.

No Kubernetes cluster is required: the ``run`` tests patch the client
factory with an in-memory orchestrator.
"""

from __future__ import annotations

from unittest.mock import patch

import yaml
from typer.testing import CliRunner

from sparkrunner import __version__
from sparkrunner.cli import app
from sparkrunner.config import JobPhase
from sparkrunner.k8s import K8sConnectionError
from tests.conftest import FakeOrchestrator, make_template, write_config

runner = CliRunner()


class NamespacedOrchestrator(FakeOrchestrator):
    """FakeOrchestrator exposing the namespace the CLI reports."""

    namespace = "test-ns"


# =============================================================================
# version command
# =============================================================================


class TestVersionCommand:
    """Tests for 'sparkrunner version'."""

    def test_version_output(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


# =============================================================================
# render command
# =============================================================================


class TestRenderCommand:
    """Tests for 'sparkrunner render'."""

    def test_render_to_stdout(self, tmp_path):
        path = write_config(tmp_path)
        result = runner.invoke(app, ["render", str(path)])

        assert result.exit_code == 0
        manifest = yaml.safe_load(result.output)
        assert manifest["metadata"]["name"] == "occurrence-verbatim"
        assert manifest["spec"]["executor"]["replicas"] == 3
        assert manifest["spec"]["executor"]["config"]["resources"]["memory"]["limit"] == "8Gi"

    def test_render_to_file(self, tmp_path):
        path = write_config(tmp_path)
        output = tmp_path / "rendered.yaml"

        result = runner.invoke(app, ["render", str(path), "-o", str(output)])

        assert result.exit_code == 0
        assert output.exists()
        manifest = yaml.safe_load(output.read_text())
        annotations = manifest["spec"]["executor"]["podOverrides"]["metadata"]["annotations"]
        assert '"memory":"10Gi"' in annotations["yunikorn.apache.org/task-groups"]

    def test_render_default_config_in_cwd(self, tmp_path, monkeypatch):
        write_config(tmp_path)
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["render"])
        assert result.exit_code == 0
        assert "occurrence-verbatim" in result.output

    def test_render_no_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["render"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_render_missing_file(self, tmp_path):
        result = runner.invoke(app, ["render", str(tmp_path / "missing.yaml")])
        assert result.exit_code == 1

    def test_render_validation_error(self, tmp_path):
        path = write_config(tmp_path)
        data = yaml.safe_load(path.read_text())
        data["executor"]["executor_count"] = 0
        path.write_text(yaml.safe_dump(data))

        result = runner.invoke(app, ["render", str(path)])

        assert result.exit_code == 1
        assert "executor.executor_count" in result.output

    def test_render_template_without_executor(self, tmp_path):
        template = make_template()
        del template["spec"]["executor"]
        path = write_config(tmp_path, template=template)

        result = runner.invoke(app, ["render", str(path)])

        assert result.exit_code == 1
        assert "Config error" in result.output

    def test_render_template_with_scalar_cpu(self, tmp_path):
        template = make_template()
        template["spec"]["executor"]["config"]["resources"]["cpu"] = "2"
        path = write_config(tmp_path, template=template)

        result = runner.invoke(app, ["render", str(path)])

        assert result.exit_code == 1
        assert "Config error" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)


# =============================================================================
# budget command
# =============================================================================


class TestBudgetCommand:
    """Tests for 'sparkrunner budget'."""

    def test_budget(self):
        result = runner.invoke(
            app,
            ["budget", "-m", "8", "--overhead-mib", "1024", "--sidecar-mib", "512", "-e", "3"],
        )
        assert result.exit_code == 0
        assert "10Gi" in result.output
        assert "30 GiB" in result.output

    def test_budget_rounds_up(self):
        result = runner.invoke(app, ["budget", "-m", "4", "--sidecar-mib", "512"])
        assert result.exit_code == 0
        assert "5Gi" in result.output

    def test_budget_requires_memory(self):
        result = runner.invoke(app, ["budget"])
        assert result.exit_code != 0


# =============================================================================
# run command
# =============================================================================


class TestRunCommand:
    """Tests for 'sparkrunner run'."""

    def _run(self, tmp_path, orchestrator, *args):
        path = write_config(tmp_path)
        with patch("sparkrunner.cli.get_spark_client", return_value=orchestrator) as factory:
            result = runner.invoke(app, ["run", str(path), *args])
        return result, factory

    def test_run_success(self, tmp_path):
        orchestrator = NamespacedOrchestrator([JobPhase.SUCCEEDED])
        result, factory = self._run(tmp_path, orchestrator)

        assert result.exit_code == 0
        assert "succeeded" in result.output
        assert len(orchestrator.submitted) == 1
        assert orchestrator.deleted == []
        factory.assert_called_once_with(kubeconfig="", context="", namespace="")

    def test_run_failure_exit_code(self, tmp_path):
        orchestrator = NamespacedOrchestrator([JobPhase.FAILED])
        result, _ = self._run(tmp_path, orchestrator)

        assert result.exit_code == 1
        assert "finished with state failed" in result.output

    def test_run_delete_on_finish_flag(self, tmp_path):
        orchestrator = NamespacedOrchestrator([JobPhase.SUCCEEDED])
        result, _ = self._run(tmp_path, orchestrator, "--delete-on-finish")

        assert result.exit_code == 0
        assert orchestrator.deleted == ["occurrence-verbatim"]

    def test_run_submission_error_prints_body(self, tmp_path, api_error):
        orchestrator = NamespacedOrchestrator(submit_error=api_error)
        result, _ = self._run(tmp_path, orchestrator)

        assert result.exit_code == 1
        assert "Invalid value" in result.output
        assert orchestrator.phase_reads == []

    def test_run_poll_error(self, tmp_path):
        orchestrator = NamespacedOrchestrator([K8sConnectionError("connection refused")])
        result, _ = self._run(tmp_path, orchestrator)

        assert result.exit_code == 1
        assert orchestrator.deleted == []

    def test_run_cluster_unreachable(self, tmp_path):
        path = write_config(tmp_path)
        with patch(
            "sparkrunner.cli.get_spark_client",
            side_effect=K8sConnectionError("Failed to load Kubernetes config"),
        ):
            result = runner.invoke(app, ["run", str(path)])

        assert result.exit_code == 1
        assert "Failed to load Kubernetes config" in result.output
