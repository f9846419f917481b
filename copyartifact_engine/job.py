from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict
import yaml
from pathlib import Path

from .steps import CopyArtifactStep


class JobKind(Enum):
    FREESTYLE = "freestyle"
    MATRIX = "matrix"
    MATRIX_CONFIGURATION = "matrix_configuration"
    MODULE_SET = "module_set"
    MODULE = "module"


# Kinds that may appear at the top level of a job definition file
CONFIGURABLE_KINDS = (JobKind.FREESTYLE, JobKind.MATRIX, JobKind.MODULE_SET)


@dataclass
class AccessControl:
    users: List[str] = field(default_factory=list)  # Users granted read access
    authenticated: bool = False  # Readable by every authenticated user
    anonymous: bool = False  # Readable without logging in

    def to_dict(self) -> dict:
        return {"users": self.users, "authenticated": self.authenticated, "anonymous": self.anonymous}


def combination_name(combination: Dict[str, str]) -> str:
    """``{"FOO": "one", "BAR": "x"}`` -> ``"FOO=one,BAR=x"`` (axis declaration order)."""
    return ",".join(f"{axis}={value}" for axis, value in combination.items())


def parse_combination(text: str) -> Dict[str, str]:
    combination = {}
    for part in text.split(","):
        if "=" not in part:
            raise ValueError(f"Invalid axis combination '{text}'. Expected AXIS=value[,AXIS2=value2]")
        axis, value = part.split("=", 1)
        combination[axis.strip()] = value.strip()
    return combination


@dataclass
class Job:
    name: str  # Full name; sub-jobs are "<parent>/<combination or module>"
    kind: JobKind = JobKind.FREESTYLE
    description: Optional[str] = None
    axes: Dict[str, List[str]] = field(default_factory=dict)  # Matrix projects
    modules: List[str] = field(default_factory=list)  # Module sets
    archiving_disabled: bool = False  # Module sets: artifacts recorded on the parent build
    acl: Optional[AccessControl] = None  # None means readable by everyone
    copy_steps: List[CopyArtifactStep] = field(default_factory=list)
    parent_name: Optional[str] = None  # Set on matrix configurations and modules
    combination: Dict[str, str] = field(default_factory=dict)  # Matrix configurations
    source_file: Optional[Path] = None

    @property
    def is_sub_job(self) -> bool:
        return self.parent_name is not None

    @property
    def short_name(self) -> str:
        return self.name[len(self.parent_name) + 1:] if self.parent_name else self.name

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "description": self.description,
            "axes": self.axes,
            "modules": self.modules,
            "archiving_disabled": self.archiving_disabled,
            "acl": self.acl.to_dict() if self.acl else None,
            "copy_artifacts": [s.to_dict() for s in self.copy_steps],
        }

    def to_yaml(self) -> str:
        data = {"name": self.name, "kind": self.kind.value}
        if self.description:
            data["description"] = self.description
        if self.axes:
            data["axes"] = self.axes
        if self.modules:
            data["modules"] = self.modules
        if self.archiving_disabled:
            data["archiving_disabled"] = True
        if self.acl:
            data["acl"] = self.acl.to_dict()
        if self.copy_steps:
            data["copy_artifacts"] = [s.to_dict() for s in self.copy_steps]
        return yaml.safe_dump({"job": data}, sort_keys=False)

    @classmethod
    def from_yaml(cls, file_path: Path, raw_yaml_content: str) -> 'Job':
        config = yaml.safe_load(raw_yaml_content) or {}
        job_data = config.get('job', {})
        if not job_data.get('name'):
            raise ValueError(f"Job config {file_path.name} must contain 'name' under 'job' key.")
        if "/" in job_data['name']:
            raise ValueError(f"Job name '{job_data['name']}' in {file_path.name} must not contain '/'.")

        try:
            kind = JobKind(job_data.get('kind', JobKind.FREESTYLE.value))
        except ValueError:
            raise ValueError(
                f"Unknown job kind '{job_data.get('kind')}' in {file_path.name}. "
                f"Expected one of: {', '.join(k.value for k in CONFIGURABLE_KINDS)}"
            )
        if kind not in CONFIGURABLE_KINDS:
            raise ValueError(f"Job kind '{kind.value}' in {file_path.name} cannot be configured directly.")

        axes_data = job_data.get('axes') or {}
        if kind == JobKind.MATRIX:
            if not isinstance(axes_data, dict) or not axes_data:
                raise ValueError(f"Matrix job in {file_path.name} needs a non-empty 'axes' mapping.")
            axes = {str(axis): [str(v) for v in values or []] for axis, values in axes_data.items()}
            empty_axes = [axis for axis, values in axes.items() if not values]
            if empty_axes:
                raise ValueError(f"Axis {', '.join(empty_axes)} in {file_path.name} has no values.")
        elif axes_data:
            raise ValueError(f"'axes' in {file_path.name} is only valid for matrix jobs.")
        else:
            axes = {}

        modules = [str(m) for m in job_data.get('modules') or []]
        if modules and kind != JobKind.MODULE_SET:
            raise ValueError(f"'modules' in {file_path.name} is only valid for module_set jobs.")
        for module in modules:
            if not module or "/" in module or "$" in module:
                raise ValueError(f"Module name '{module}' in {file_path.name} must be non-empty and not contain '/' or '$'.")

        acl_data = job_data.get('acl')
        acl = None
        if isinstance(acl_data, dict):
            acl = AccessControl(
                users=[str(u) for u in acl_data.get('users') or []],
                authenticated=bool(acl_data.get('authenticated', False)),
                anonymous=bool(acl_data.get('anonymous', False)),
            )
        elif acl_data is not None:
            raise ValueError(f"'acl' in {file_path.name} must be a mapping. Found type: {type(acl_data)}")

        copy_steps = [CopyArtifactStep.from_dict(s) for s in job_data.get('copy_artifacts') or []]

        return cls(
            name=job_data['name'],
            kind=kind,
            description=job_data.get('description'),
            axes=axes,
            modules=modules,
            archiving_disabled=bool(job_data.get('archiving_disabled', False)),
            acl=acl,
            copy_steps=copy_steps,
            source_file=file_path,
        )
