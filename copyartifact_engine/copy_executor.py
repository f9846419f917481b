import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from .artifact_manager import ArtifactManager
from .build import Build
from .config import BUILD_NUMBER_VAR_PREFIX, BUILD_RESULT_VAR_PREFIX
from .errors import (
    ArtifactCopyError,
    CopyArtifactError,
    CopyErrorKind,
    InvalidTargetError,
    MissingArtifactError,
    MissingBuildError,
)
from .expander import expand
from .history import BuildHistory
from .job import Job, JobKind
from .job_manager import JobManager
from .logger_setup import logger
from .resolver import SourceReferenceResolver
from .steps import CopyArtifactStep
from .workspace_manager import WorkspaceManager


class CopyStatus(Enum):
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


def env_var_suffix(job_name: str) -> str:
    """Upper-cased job name with each run of non-letters collapsed to '_'."""
    return re.sub(r"[^A-Z]+", "_", job_name.upper())


def build_env_vars(job_name: str, build: Build) -> Dict[str, str]:
    suffix = env_var_suffix(job_name)
    env = {BUILD_NUMBER_VAR_PREFIX + suffix: str(build.number)}
    if build.result is not None:
        env[BUILD_RESULT_VAR_PREFIX + suffix] = build.result.value
    return env


@dataclass
class StepContext:
    """The consuming build a copy step runs in."""
    workspace: Path
    env: Mapping[str, str] = field(default_factory=dict)
    build_logger: logging.Logger = logger


@dataclass
class BranchResult:
    job_name: str
    build: Optional[Build] = None  # None when no build matched (optional steps only)
    target_dir: Optional[Path] = None
    files_copied: int = 0
    skipped_reason: Optional[str] = None

    @property
    def build_number(self) -> Optional[int]:
        return self.build.number if self.build else None


@dataclass
class CopyResult:
    status: CopyStatus
    env: Dict[str, str]  # Environment for the following steps: input plus added_env
    added_env: Dict[str, str] = field(default_factory=dict)
    branches: List[BranchResult] = field(default_factory=list)
    error_kind: Optional[CopyErrorKind] = None
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == CopyStatus.SUCCESS

    @property
    def files_copied(self) -> int:
        return sum(b.files_copied for b in self.branches)


class CopyExecutor:
    def __init__(self, job_manager: JobManager, history: BuildHistory,
                 resolver: SourceReferenceResolver,
                 artifact_manager: Optional[ArtifactManager] = None,
                 workspace_manager: Optional[WorkspaceManager] = None):
        self.job_manager = job_manager
        self.history = history
        self.resolver = resolver
        self.artifact_manager = artifact_manager or history.artifact_manager
        self.workspace_manager = workspace_manager or WorkspaceManager()

    def perform(self, step: CopyArtifactStep, context: StepContext) -> CopyResult:
        """Runs one copy step. Failures are reported in the result, never raised."""
        console = context.build_logger
        env = dict(context.env)
        branches: List[BranchResult] = []
        added_env: Dict[str, str] = {}

        try:
            source = self.resolver.resolve(step.project_name, env)
            target_root = self._target_root(context.workspace, expand(step.target, env))
            includes = expand(step.filter, env)

            branch_jobs = self._branches(source.job)
            if not branch_jobs:
                error = MissingBuildError(
                    f"{source.job.kind.value} project {source.job.name} has no configurations or modules to copy from")
                if not step.optional:
                    raise error
                console.warning(f"{error} (optional, continuing)")

            for branch_job, subdir in branch_jobs:
                branch = self._copy_branch(step, branch_job, env, target_root / subdir, includes, console)
                branches.append(branch)
                if branch.build is not None:
                    added_env.update(build_env_vars(branch_job.name, branch.build))

        except CopyArtifactError as e:
            console.error(str(e))
            logger.error(f"Copy from '{step.project_name}' failed ({e.kind.value}): {e}")
            return CopyResult(
                status=CopyStatus.FAILURE,
                env=env,
                branches=branches,
                error_kind=e.kind,
                error_message=str(e),
            )

        new_env = dict(env)
        new_env.update(added_env)
        return CopyResult(status=CopyStatus.SUCCESS, env=new_env, added_env=added_env, branches=branches)

    def perform_all(self, steps: List[CopyArtifactStep], context: StepContext) -> List[CopyResult]:
        """Runs steps in order, each seeing the env published by the ones before; stops at the first failure."""
        results = []
        env = dict(context.env)
        for step in steps:
            result = self.perform(step, StepContext(context.workspace, env, context.build_logger))
            results.append(result)
            if not result.succeeded:
                break
            env = result.env
        return results

    @staticmethod
    def _target_root(workspace: Path, target: str) -> Path:
        """``target`` below ``workspace``; a leading '/' is dropped and '..' may not climb out."""
        target_root = workspace / target.lstrip("/\\")
        try:
            target_root.resolve().relative_to(workspace.resolve())
        except ValueError:
            raise InvalidTargetError(f"Target directory '{target}' is outside the workspace {workspace}")
        return target_root

    def _branches(self, job: Job) -> List[Tuple[Job, str]]:
        """(job to select from, target subdirectory) for each independent copy."""
        if job.kind == JobKind.MATRIX:
            return [(c, c.short_name) for c in self.job_manager.configurations_of(job)]
        if job.kind == JobKind.MODULE_SET and not job.archiving_disabled:
            return [(m, "") for m in self.job_manager.modules_of(job)]
        return [(job, "")]

    def _copy_branch(self, step: CopyArtifactStep, job: Job, env: Dict[str, str],
                     target_dir: Path, includes: str, console: logging.Logger) -> BranchResult:
        branch = BranchResult(job_name=job.name)
        try:
            build = step.selector.get_build(job, self.history, env)
            if build is None:
                raise MissingBuildError(
                    f"Unable to find a build for artifact copy from: {job.name} ({step.selector.describe()})")
            branch.build = build
            console.info(f"Copying from {job.name} {build.label} ({build.result.value if build.result else 'RUNNING'})")

            root = self._file_root(job, build, step.copies_workspace)
            try:
                copied = self.artifact_manager.copy_files(root, includes, target_dir, step.flatten) if root else 0
            except OSError as e:
                raise ArtifactCopyError(f"Failed to copy from {job.name} {build.label} to {target_dir}: {e}")
            if copied == 0:
                where = "workspace" if step.copies_workspace else "artifacts"
                raise MissingArtifactError(
                    f"Failed to copy {where} from {job.name} {build.label} with filter: '{includes}'")

            branch.files_copied = copied
            branch.target_dir = target_dir
            console.info(f"Copied {copied} file(s) from {job.name} {build.label} to {target_dir}")
        except CopyArtifactError as e:
            if not (step.optional and e.suppressible):
                raise
            branch.skipped_reason = str(e)
            console.warning(f"{e} (optional, continuing)")
        return branch

    def _file_root(self, job: Job, build: Build, from_workspace: bool) -> Optional[Path]:
        if from_workspace:
            return self.workspace_manager.workspace_of(build)

        # Modules of a set with archiving disabled record nothing themselves;
        # their artifacts are on the owning module-set build.
        if job.kind == JobKind.MODULE:
            parent = self.job_manager.parent_of(job)
            if parent is not None and parent.archiving_disabled:
                parent_build = None
                if build.parent_number is not None:
                    parent_build = self.history.build_by_number(parent, build.parent_number)
                if parent_build is None:
                    logger.warning(f"{job.name} {build.label} has no owning {parent.name} build to read artifacts from")
                    return None
                return self.artifact_manager.artifacts_of(parent_build)

        return self.artifact_manager.artifacts_of(build)
