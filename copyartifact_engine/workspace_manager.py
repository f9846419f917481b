import shutil
from pathlib import Path
from typing import Optional

from .build import Build
from .logger_setup import logger


class WorkspaceManager:
    def workspace_of(self, build: Build) -> Optional[Path]:
        """The build's live workspace, or None once it was wiped or never recorded."""
        if not build.workspace_path:
            return None
        ws_path = Path(build.workspace_path)
        if not ws_path.is_dir():
            logger.warning(f"Workspace {ws_path} of {build.job_name} #{build.number} no longer exists.")
            return None
        return ws_path

    def cleanup_workspace(self, workspace_path: Path):
        if workspace_path.exists() and workspace_path.is_dir():
            try:
                shutil.rmtree(workspace_path)
                logger.info(f"Cleaned up workspace: {workspace_path}")
            except OSError as e:
                logger.error(f"Error cleaning up workspace {workspace_path}: {e}")
        else:
            logger.warning(f"Workspace {workspace_path} not found or not a directory.")
