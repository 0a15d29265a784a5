import json

import yaml
from click.testing import CliRunner

from enactment_engine.cli import cli
from enactment_engine.runtime import EngineRuntime

from conftest import AZURE_ENDPOINT

WORKFLOW = {
    "workflow": {
        "name": "wf",
        "root": {
            "name": "greet",
            "properties": {"resource": AZURE_ENDPOINT},
            "input": [{"name": "who", "source": "wf/who"}],
            "output": [{"name": "greeting"}],
        },
    }
}


def use_runtime(monkeypatch, runtime):
    def from_settings(cls, settings, gateway=None, log_sink=None):
        runtime.settings = settings
        return runtime

    monkeypatch.setattr(EngineRuntime, "from_settings", classmethod(from_settings))


def read_result(output):
    return json.loads(output[output.index('{\n  "success"'):])


def test_run_workflow(monkeypatch, runtime, gateway):
    gateway.register(AZURE_ENDPOINT, lambda inputs: {"greeting": f"hello {inputs['who']}"})
    use_runtime(monkeypatch, runtime)
    runner = CliRunner()

    with runner.isolated_filesystem():
        with open("workflow.yaml", "w") as f:
            yaml.safe_dump(WORKFLOW, f)
        with open("input.json", "w") as f:
            json.dump({"who": "world"}, f)
        result = runner.invoke(cli, ["run", "workflow.yaml", "input.json", "--hide-credentials"])

    assert result.exit_code == 0, result.output
    assert read_result(result.output) == {"success": True, "result": {"greet/greeting": "hello world"}}
    assert runtime.settings.hide_credentials is True


def test_run_reports_failure(monkeypatch, runtime):
    use_runtime(monkeypatch, runtime)
    runner = CliRunner()

    with runner.isolated_filesystem():
        with open("workflow.json", "w") as f:
            json.dump(WORKFLOW, f)
        result = runner.invoke(cli, ["run", "workflow.json"])

    assert result.exit_code == 1
    assert read_result(result.output)["success"] is False


def test_validate_only(monkeypatch, runtime):
    use_runtime(monkeypatch, runtime)
    runner = CliRunner()

    with runner.isolated_filesystem():
        with open("workflow.json", "w") as f:
            json.dump(WORKFLOW, f)
        result = runner.invoke(cli, ["run", "workflow.json", "--validate-only"])

    assert result.exit_code == 0
    assert "Workflow wf is valid" in result.output


def test_invalid_workflow(monkeypatch, runtime):
    use_runtime(monkeypatch, runtime)
    runner = CliRunner()

    with runner.isolated_filesystem():
        with open("workflow.json", "w") as f:
            json.dump({"workflow": {"name": "wf"}}, f)
        result = runner.invoke(cli, ["run", "workflow.json"])

    assert result.exit_code == 1
    assert "Invalid workflow" in result.output
