"""Turns a stored source reference into the job to select builds from.

A reference is ``job``, ``job/AXIS=value[,AXIS2=value2]`` (one matrix
configuration) or ``job/module`` (one module of a module set). Any part may
carry ``$PARAM`` placeholders, which are expanded from the consuming build's
environment.

Static references are permission-checked once, when the step is configured,
against the configuring user. Parameterized ones can only be checked when the
build runs, and then the job must be readable by every authenticated user:
the name was not known at configuration time, so the triggering user's own
grants must not widen what the step can reach.
"""
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import MissingProjectError, PermissionDeniedError
from .expander import expand, has_placeholders
from .job import Job, JobKind
from .job_manager import JobManager
from .logger_setup import logger
from .permissions import PermissionChecker


@dataclass
class ResolvedSource:
    job: Job  # Job, matrix configuration or module that selection runs against
    reference: str  # The reference after parameter expansion
    parameterized: bool

    @property
    def pinned(self) -> bool:
        """True when the reference named a single configuration or module."""
        return self.job.is_sub_job


class SourceReferenceResolver:
    def __init__(self, job_manager: JobManager, permissions: PermissionChecker):
        self.job_manager = job_manager
        self.permissions = permissions

    def resolve(self, raw_reference: str, env: Mapping[str, str]) -> ResolvedSource:
        parameterized = has_placeholders(raw_reference)
        expanded = expand(raw_reference or "", env).strip()
        job_name, _, suffix = expanded.partition("/")
        if not job_name:
            raise MissingProjectError(f"Unable to find project for artifact copy: '{raw_reference}'")

        job = self.job_manager.get_job(job_name)
        if job is None:
            raise MissingProjectError(f"Unable to find project for artifact copy: '{expanded}'")

        if parameterized and not self.permissions.accessible_to_all_authenticated(job):
            raise PermissionDeniedError(
                f"Project '{job_name}' (from parameterized reference '{raw_reference}') "
                "is not readable by all authenticated users")

        if suffix:
            job = self._resolve_suffix(job, suffix)

        logger.debug(f"Resolved source reference '{raw_reference}' to {job.kind.value} '{job.name}'")
        return ResolvedSource(job=job, reference=expanded, parameterized=parameterized)

    def _resolve_suffix(self, job: Job, suffix: str) -> Job:
        if job.kind == JobKind.MATRIX:
            sub_job = self.job_manager.find_configuration(job, suffix)
        elif job.kind == JobKind.MODULE_SET:
            sub_job = self.job_manager.find_module(job, suffix)
        else:
            sub_job = None
        if sub_job is None:
            raise MissingProjectError(
                f"Unable to find '{suffix}' in {job.kind.value} project '{job.name}'")
        return sub_job

    def check_configured(self, raw_reference: str, user: Optional[str]) -> str:
        """Configuration-time check: the reference, or "" if ``user`` may not use it.

        Parameterized references are returned untouched; they are checked at
        run time instead.
        """
        if not raw_reference or has_placeholders(raw_reference):
            return raw_reference or ""
        item = self.job_manager.get_item(raw_reference)
        if item is None or not self.permissions.can_read(user, item):
            logger.warning(f"Clearing source project '{raw_reference}': not found or not readable by {user or 'anonymous'}")
            return ""
        return raw_reference
