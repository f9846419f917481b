"""Failure conditions of a copy step.

Every condition here is reported as a failed step result, never as a
process-level fault. ``CopyExecutor.perform`` is the single place that turns
these exceptions into a :class:`~copyartifact_engine.copy_executor.CopyResult`.
"""
from enum import Enum


class CopyErrorKind(Enum):
    MISSING_PROJECT = "MISSING_PROJECT"
    MISSING_BUILD = "MISSING_BUILD"
    INVALID_SELECTOR_EXPRESSION = "INVALID_SELECTOR_EXPRESSION"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    MISSING_ARTIFACT = "MISSING_ARTIFACT"
    INVALID_TARGET = "INVALID_TARGET"
    COPY_FAILED = "COPY_FAILED"


class CopyArtifactError(Exception):
    kind: CopyErrorKind = None
    # Whether the step's 'optional' flag turns this condition into a skip
    suppressible: bool = False


class MissingProjectError(CopyArtifactError):
    kind = CopyErrorKind.MISSING_PROJECT


class MissingBuildError(CopyArtifactError):
    kind = CopyErrorKind.MISSING_BUILD
    suppressible = True


class InvalidSelectorExpressionError(MissingBuildError):
    kind = CopyErrorKind.INVALID_SELECTOR_EXPRESSION


class PermissionDeniedError(CopyArtifactError):
    kind = CopyErrorKind.PERMISSION_DENIED


class MissingArtifactError(CopyArtifactError):
    kind = CopyErrorKind.MISSING_ARTIFACT
    suppressible = True


class InvalidTargetError(CopyArtifactError):
    """The expanded target directory is not inside the consuming workspace."""
    kind = CopyErrorKind.INVALID_TARGET


class ArtifactCopyError(CopyArtifactError):
    kind = CopyErrorKind.COPY_FAILED
