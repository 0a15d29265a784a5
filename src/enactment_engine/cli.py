"""
FaaS enactment engine CLI
"""
import asyncio
import json
import logging
from pathlib import Path

import click
import yaml

from .builder import TreeBuilder
from .config import EngineSettings
from .engine import ExecutionEngine
from .errors import EnactmentError, WorkflowDefinitionError
from .monitoring import configure_logging
from .runtime import EngineRuntime

LOGGER = logging.getLogger("enactment.cli")


def _load_input(input_file):
    if input_file is None:
        return {}
    path = Path(input_file)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise click.ClickException(f"Workflow input {input_file} must be a mapping")
    return data


@click.group()
def cli():
    """FaaS enactment engine CLI"""
    pass


@cli.command()
@click.argument("workflow_file", type=click.Path(exists=True))
@click.argument("input_file", required=False, type=click.Path(exists=True))
@click.option("--credentials", "credentials_path", default=None, help="Provider credentials file")
@click.option("--hide-credentials", is_flag=True, help="Redact credentials in logged inputs and results")
@click.option("--execution-id", default=-1, type=int, help="Execution id; -1 disables invocation logging")
@click.option("--log-level", default=None, help="Log level, overrides ENACTMENT_LOG_LEVEL")
@click.option("--validate-only", is_flag=True, help="Only build the workflow tree, do not execute")
def run(workflow_file, input_file, credentials_path, hide_credentials, execution_id, log_level, validate_only):
    """Run a workflow from file"""
    settings = EngineSettings.from_env()
    if credentials_path:
        settings.credentials_path = credentials_path
    if hide_credentials:
        settings.hide_credentials = True
    if log_level:
        settings.log_level = log_level
    configure_logging(settings.log_level)

    runtime = EngineRuntime.from_settings(settings)
    try:
        workflow = TreeBuilder(runtime, execution_id=execution_id).load(workflow_file)
    except (WorkflowDefinitionError, ValueError, yaml.YAMLError) as exc:
        raise click.ClickException(f"Invalid workflow {workflow_file}: {exc}")
    if validate_only:
        click.echo(f"Workflow {workflow.name} is valid")
        return

    inputs = _load_input(input_file)

    async def _run():
        try:
            return await ExecutionEngine(runtime).execute_workflow(workflow, inputs)
        finally:
            await runtime.gateway.aclose()

    try:
        result = asyncio.run(_run())
    except EnactmentError as exc:
        raise click.ClickException(str(exc))

    click.echo(json.dumps({"success": result.success, "result": result.outputs}, indent=2, default=str))
    if not result.success:
        raise SystemExit(1)


def main():
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
