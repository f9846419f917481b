from typing import Optional

from .job_manager import JobManager
from .logger_setup import logger


def rename_reference(reference: str, old_name: str, new_name: str) -> Optional[str]:
    """The reference rewritten for a renamed job, or None if it does not name ``old_name``.

    Only a literal ``old_name`` or ``old_name/...`` prefix is rewritten; a job
    reached through a parameter cannot be known until the build runs.
    """
    if reference == old_name:
        return new_name
    if reference.startswith(old_name + "/"):
        return new_name + reference[len(old_name):]
    return None


class CopyArtifactRenameListener:
    """Keeps stored copy-step source references pointing at renamed jobs."""

    def __init__(self, job_manager: JobManager):
        self.job_manager = job_manager

    def register(self) -> 'CopyArtifactRenameListener':
        self.job_manager.add_rename_listener(self.on_job_renamed)
        return self

    def on_job_renamed(self, old_name: str, new_name: str):
        for job in self.job_manager.list_jobs():
            changed = False
            for step in job.copy_steps:
                renamed = rename_reference(step.project_name, old_name, new_name)
                if renamed is not None:
                    logger.info(f"{job.name}: copy source '{step.project_name}' -> '{renamed}'")
                    step.project_name = renamed
                    changed = True
            if changed and job.name != new_name:
                self.job_manager.save_job(job)
