from .artifact_manager import ArtifactManager
from .config import Settings
from .copy_executor import CopyExecutor
from .history import BuildHistory
from .job_manager import JobManager
from .logger_setup import move_build_logs
from .permissions import PermissionChecker
from .rename_listener import CopyArtifactRenameListener
from .resolver import SourceReferenceResolver
from .workspace_manager import WorkspaceManager


class Engine:
    """Everything a copy step needs, wired from one :class:`Settings`."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.job_manager = JobManager(settings.jobs_dir)
        self.artifact_manager = ArtifactManager(settings.builds_dir)
        self.history = BuildHistory(settings.builds_dir, self.artifact_manager)
        self.workspace_manager = WorkspaceManager()
        self.permissions = PermissionChecker(self.job_manager)
        self.resolver = SourceReferenceResolver(self.job_manager, self.permissions)
        self.copy_executor = CopyExecutor(
            self.job_manager, self.history, self.resolver,
            artifact_manager=self.artifact_manager,
            workspace_manager=self.workspace_manager,
        )

        # History moves first so rewritten references find their builds
        self.job_manager.add_rename_listener(self.history.on_job_renamed)
        self.job_manager.add_rename_listener(self._move_build_logs)
        CopyArtifactRenameListener(self.job_manager).register()

    def _move_build_logs(self, old_name: str, new_name: str):
        move_build_logs(self.settings.build_logs_dir, old_name, new_name)
