from dataclasses import dataclass, field
from typing import Optional, Dict
from enum import Enum


class BuildResult(Enum):
    # Declaration order is the severity order: earlier is better.
    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"

    @property
    def ordinal(self) -> int:
        return list(BuildResult).index(self)

    def is_better_or_equal_to(self, other: 'BuildResult') -> bool:
        return self.ordinal <= other.ordinal

    def is_worse_than(self, other: 'BuildResult') -> bool:
        return self.ordinal > other.ordinal


@dataclass
class Build:
    number: int  # Sequential number within the job, never reused
    job_name: str  # Full name, e.g. "matrix/FOO=one" for a configuration
    result: Optional[BuildResult] = None  # None while the build is still running
    start_time: Optional[str] = None  # ISO 8601
    end_time: Optional[str] = None  # ISO 8601
    keep_forever: bool = False
    display_name: Optional[str] = None
    workspace_path: Optional[str] = None  # Live workspace the build ran in
    parent_number: Optional[int] = None  # Owning matrix/module-set build, for sub-job builds
    parameters: Dict[str, str] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        return self.result is not None

    @property
    def label(self) -> str:
        return self.display_name or f"#{self.number}"

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "job_name": self.job_name,
            "result": self.result.value if self.result else None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "keep_forever": self.keep_forever,
            "display_name": self.display_name,
            "workspace_path": self.workspace_path,
            "parent_number": self.parent_number,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Build':
        result = data.get('result')
        build = cls(
            number=data['number'],
            job_name=data['job_name'],
            result=BuildResult(result) if result else None,
        )
        build.start_time = data.get('start_time')
        build.end_time = data.get('end_time')
        build.keep_forever = data.get('keep_forever', False)
        build.display_name = data.get('display_name')
        build.workspace_path = data.get('workspace_path')
        build.parent_number = data.get('parent_number')
        build.parameters = data.get('parameters', {})
        return build


# Permalink name -> predicate; a permalink resolves to the newest build matching it.
PERMALINKS = {
    "lastBuild": lambda b: True,
    "lastCompletedBuild": lambda b: b.is_completed,
    "lastSuccessfulBuild": lambda b: b.is_completed and b.result.is_better_or_equal_to(BuildResult.UNSTABLE),
    "lastStableBuild": lambda b: b.result == BuildResult.SUCCESS,
    "lastUnstableBuild": lambda b: b.result == BuildResult.UNSTABLE,
    "lastFailedBuild": lambda b: b.result == BuildResult.FAILURE,
    "lastUnsuccessfulBuild": lambda b: b.is_completed and b.result != BuildResult.SUCCESS,
}
