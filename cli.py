import click
import json
from pathlib import Path

from copyartifact_engine.build import BuildResult, PERMALINKS
from copyartifact_engine.config import Settings
from copyartifact_engine.copy_executor import CopyResult, StepContext
from copyartifact_engine.engine import Engine
from copyartifact_engine.logger_setup import close_build_logger, get_build_logger, logger
from copyartifact_engine.selectors import selector_from_dict, selector_types
from copyartifact_engine.steps import CopyArtifactStep

RESULT_CHOICES = [r.value for r in BuildResult] + ["RUNNING"]


def _parse_params(param: tuple) -> dict:
    params_dict = {}
    for p_str in param:
        if "=" not in p_str:
            click.echo(f"Warning: Invalid parameter format '{p_str}'. Use KEY=VALUE. Skipping.")
            continue
        key, value = p_str.split("=", 1)
        params_dict[key] = value
    return params_dict


def _selector_options(f):
    f = click.option("--selector", "selector_type", type=click.Choice(selector_types()), default="status",
                     show_default=True, help="How to pick the source build.")(f)
    f = click.option("--stable", is_flag=True, help="status selector: only stable (SUCCESS) builds.")(f)
    f = click.option("--build-number", default="", help="specific selector: build number, may be $PARAM.")(f)
    f = click.option("--permalink", type=click.Choice(sorted(PERMALINKS)), default=None,
                     help="permalink selector: which permalink.")(f)
    return f


def _copy_options(f):
    f = click.option("--project", "project_name", required=True,
                     help="Source job, optionally job/AXIS=value or job/module; may contain $PARAM.")(f)
    f = _selector_options(f)
    f = click.option("--filter", "filter_", default="", help="Comma-separated include globs (default: all files).")(f)
    f = click.option("--target", default="", help="Target directory inside the workspace.")(f)
    f = click.option("--flatten", is_flag=True, help="Ignore source directories.")(f)
    f = click.option("--optional", is_flag=True, help="Do not fail when no build or no files match.")(f)
    f = click.option("--from-workspace", is_flag=True, help="Copy from the build's workspace instead of its artifacts.")(f)
    return f


def _build_step(project_name, selector_type, stable, build_number, permalink,
                filter_, target, flatten, optional, from_workspace) -> CopyArtifactStep:
    selector_config = {"type": selector_type, "stable": stable, "build_number": build_number,
                       "permalink": permalink or "lastSuccessfulBuild"}
    try:
        selector = selector_from_dict(selector_config)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return CopyArtifactStep(project_name=project_name, selector=selector, filter=filter_, target=target,
                            flatten=flatten, optional=optional, from_workspace=from_workspace)


def _report(result: CopyResult):
    for branch in result.branches:
        if branch.skipped_reason:
            click.echo(f"  - {branch.job_name}: skipped ({branch.skipped_reason})")
        else:
            click.echo(f"  - {branch.job_name} #{branch.build_number}: {branch.files_copied} file(s) -> {branch.target_dir}")
    if result.succeeded:
        for key, value in sorted(result.added_env.items()):
            click.echo(f"{key}={value}")
    else:
        click.echo(f"Copy failed [{result.error_kind.value}]: {result.error_message}", err=True)


@click.group()
@click.option("--data-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Build metadata and artifacts root (env: COPYARTIFACT_DATA_DIR).")
@click.option("--jobs-dir", type=click.Path(file_okay=False, path_type=Path), default=None,
              help="Directory of job YAML files (env: COPYARTIFACT_JOBS_DIR).")
@click.pass_context
def cli(ctx, data_dir, jobs_dir):
    """Copy artifacts between CI jobs."""
    settings = Settings.from_env(data_dir=data_dir, jobs_dir=jobs_dir)
    logger.setLevel(settings.log_level)
    ctx.obj = Engine(settings)


@cli.command("list-jobs")
@click.pass_obj
def list_jobs(engine: Engine):
    """Lists all configured jobs."""
    jobs = engine.job_manager.list_jobs()
    if not jobs:
        click.echo("No jobs configured.")
        return
    click.echo("Available jobs:")
    for job in jobs:
        click.echo(f"- {job.name} ({job.kind.value})")
        if job.description:
            click.echo(f"  Description: {job.description}")
        for configuration in engine.job_manager.configurations_of(job):
            click.echo(f"  Configuration: {configuration.short_name}")
        for module in engine.job_manager.modules_of(job):
            click.echo(f"  Module: {module.short_name}")
        for step in job.copy_steps:
            click.echo(f"  Copies from: {step.project_name or '(cleared)'} [{step.selector.describe()}]")


@cli.command("list-builds")
@click.argument("job_name")
@click.option("--limit", default=10, type=int, help="Number of recent builds to show.")
@click.pass_obj
def list_builds(engine: Engine, job_name: str, limit: int):
    """Lists recent builds for a job (or job/configuration)."""
    builds = engine.history.builds_of(job_name)[:limit]
    if not builds:
        click.echo(f"No builds found for job '{job_name}'.")
        return
    click.echo(f"Recent builds for '{job_name}':")
    for b in builds:
        result = b.result.value if b.result else "RUNNING"
        kept = " | Kept forever" if b.keep_forever else ""
        click.echo(f"  - Build #{b.number} | Result: {result} | Started: {b.start_time or 'N/A'}{kept}")


@cli.command("record-build")
@click.argument("job_name")
@click.option("--result", type=click.Choice(RESULT_CHOICES), default="SUCCESS", show_default=True)
@click.option("--workspace", type=click.Path(exists=True, file_okay=False, path_type=Path), default=None,
              help="Workspace the build ran in.")
@click.option("--archive", default="", help="Comma-separated globs of workspace files to archive.")
@click.option("--keep", is_flag=True, help="Keep this build forever.")
@click.option("--number", type=int, default=None, help="Build number (defaults to the next free one).")
@click.option("--parent-number", type=int, default=None, help="Owning build of a matrix/module-set job.")
@click.option("--param", "-p", multiple=True, help="Build parameter (KEY=VALUE).")
@click.pass_obj
def record_build(engine: Engine, job_name, result, workspace, archive, keep, number, parent_number, param):
    """Records a build of a job, archiving artifacts from its workspace."""
    if engine.job_manager.get_item(job_name) is None:
        click.echo(f"Error: Job '{job_name}' not found.")
        raise SystemExit(1)
    try:
        build = engine.history.record_build(
            job_name,
            result=None if result == "RUNNING" else BuildResult(result),
            workspace=workspace.resolve() if workspace else None,
            archive=archive,
            keep_forever=keep,
            parameters=_parse_params(param),
            parent_number=parent_number,
            number=number,
        )
    except ValueError as e:
        click.echo(f"Error: {e}")
        raise SystemExit(1)
    click.echo(f"Recorded build #{build.number} of '{job_name}'.")


@cli.command("keep-build")
@click.argument("job_name")
@click.argument("number", type=int)
@click.option("--release", is_flag=True, help="Stop keeping the build forever.")
@click.pass_obj
def keep_build(engine: Engine, job_name: str, number: int, release: bool):
    """Marks a build to be kept forever (or releases it)."""
    try:
        engine.history.set_keep_forever(job_name, number, keep=not release)
    except KeyError as e:
        click.echo(f"Error: {e.args[0]}")
        raise SystemExit(1)
    click.echo(f"Build #{number} of '{job_name}' {'released' if release else 'kept forever'}.")


@cli.command("wipe-workspace")
@click.argument("job_name")
@click.argument("number", type=int)
@click.pass_obj
def wipe_workspace(engine: Engine, job_name: str, number: int):
    """Deletes the workspace a build ran in."""
    build = engine.history.build_by_number(job_name, number)
    if build is None or not build.workspace_path:
        click.echo(f"Build #{number} of '{job_name}' has no recorded workspace.")
        raise SystemExit(1)
    engine.workspace_manager.cleanup_workspace(Path(build.workspace_path))


@cli.command("copy")
@_copy_options
@click.option("--workspace", type=click.Path(file_okay=False, path_type=Path), default=Path("."),
              show_default=True, help="Workspace of the consuming build.")
@click.option("--param", "-p", multiple=True, help="Environment of the consuming build (KEY=VALUE).")
@click.pass_obj
def copy(engine: Engine, workspace: Path, param: tuple, **options):
    """Copies artifacts of another job's build into a workspace."""
    step = _build_step(**options)
    workspace.mkdir(parents=True, exist_ok=True)
    result = engine.copy_executor.perform(step, StepContext(workspace=workspace, env=_parse_params(param)))
    _report(result)
    if not result.succeeded:
        raise SystemExit(1)


@cli.command("run-steps")
@click.argument("job_name")
@click.option("--workspace", type=click.Path(file_okay=False, path_type=Path), required=True)
@click.option("--param", "-p", multiple=True, help="Environment of the consuming build (KEY=VALUE).")
@click.option("--env-out", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Write the resulting environment as JSON.")
@click.option("--build-number", type=int, default=None,
              help="Number of the consuming build, names its console log (defaults to the next free one).")
@click.pass_obj
def run_steps(engine: Engine, job_name: str, workspace: Path, param: tuple, env_out: Path, build_number: int):
    """Runs the copy steps configured on a job."""
    job = engine.job_manager.get_job(job_name)
    if not job:
        click.echo(f"Error: Job '{job_name}' not found.")
        raise SystemExit(1)
    if not job.copy_steps:
        click.echo(f"Job '{job_name}' has no copy steps.")
        return

    workspace.mkdir(parents=True, exist_ok=True)
    if build_number is None:
        builds = engine.history.builds_of(job)
        build_number = builds[0].number + 1 if builds else 1
    build_logger, log_file_path = get_build_logger(engine.settings.build_logs_dir, job.name, build_number)
    try:
        results = engine.copy_executor.perform_all(
            job.copy_steps, StepContext(workspace=workspace, env=_parse_params(param), build_logger=build_logger))
    finally:
        close_build_logger(build_logger)
    click.echo(f"Console log: {log_file_path}")

    for step, result in zip(job.copy_steps, results):
        click.echo(f"Step '{step.project_name}': {result.status.value}")
        _report(result)
    if env_out is not None:
        env_out.write_text(json.dumps(results[-1].env, indent=2, sort_keys=True), encoding="utf-8")
    if not results[-1].succeeded:
        raise SystemExit(1)


@cli.command("add-copy-step")
@click.argument("job_name")
@_copy_options
@click.option("--user", default=None, help="User configuring the step (default: anonymous).")
@click.pass_obj
def add_copy_step(engine: Engine, job_name: str, user: str, **options):
    """Adds a copy step to a job's configuration."""
    job = engine.job_manager.get_job(job_name)
    if not job:
        click.echo(f"Error: Job '{job_name}' not found.")
        raise SystemExit(1)
    step = _build_step(**options)
    step.project_name = engine.resolver.check_configured(step.project_name, user)
    if not step.project_name:
        click.echo(f"Warning: '{options['project_name']}' is not accessible; the source project was cleared.")
    job.copy_steps.append(step)
    engine.job_manager.save_job(job)
    logger.info(f"Added copy step to '{job_name}' from '{step.project_name}'")
    click.echo(f"Added copy step to '{job_name}'.")


@cli.command("rename-job")
@click.argument("old_name")
@click.argument("new_name")
@click.pass_obj
def rename_job(engine: Engine, old_name: str, new_name: str):
    """Renames a job, updating copy steps that reference it."""
    try:
        engine.job_manager.rename_job(old_name, new_name)
    except (KeyError, ValueError) as e:
        click.echo(f"Error: {e.args[0]}")
        raise SystemExit(1)
    click.echo(f"Renamed '{old_name}' to '{new_name}'.")


if __name__ == '__main__':
    cli()
