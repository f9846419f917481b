from typing import Optional

from .job import Job
from .job_manager import JobManager

ANONYMOUS = None  # Identity of a caller who is not logged in


class PermissionChecker:
    """Read-access decisions for jobs; the caller's identity is always passed in.

    Matrix configurations and modules have no ACL of their own and are
    checked against their parent job.
    """

    def __init__(self, job_manager: JobManager):
        self.job_manager = job_manager

    def _acl_of(self, job: Job):
        if job.is_sub_job:
            parent = self.job_manager.parent_of(job)
            if parent is not None:
                return parent.acl
        return job.acl

    def can_read(self, user: Optional[str], job: Job) -> bool:
        acl = self._acl_of(job)
        if acl is None:
            return True
        if acl.anonymous:
            return True
        if user is ANONYMOUS:
            return False
        return acl.authenticated or user in acl.users

    def accessible_to_all_authenticated(self, job: Job) -> bool:
        """Whether any logged-in user, whoever it is, may read ``job``."""
        acl = self._acl_of(job)
        return acl is None or acl.anonymous or acl.authenticated
