from dataclasses import dataclass, field

from .selectors import BuildSelector, StatusBuildSelector, selector_from_dict


@dataclass
class CopyArtifactStep:
    """A configured "copy artifacts from another job" build step.

    ``project_name`` is the stored source reference: ``job``, ``job/AXIS=value``
    or ``job/module``, any part of which may contain ``$PARAM`` placeholders.
    """
    project_name: str
    selector: BuildSelector = field(default_factory=StatusBuildSelector)
    filter: str = ""  # Comma-separated include globs, empty copies everything
    target: str = ""  # Directory relative to the consuming workspace
    flatten: bool = False
    optional: bool = False
    from_workspace: bool = False

    @property
    def copies_workspace(self) -> bool:
        return self.from_workspace or self.selector.uses_workspace

    def to_dict(self) -> dict:
        return {
            "project": self.project_name,
            "selector": self.selector.to_dict(),
            "filter": self.filter,
            "target": self.target,
            "flatten": self.flatten,
            "optional": self.optional,
            "from_workspace": self.from_workspace,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CopyArtifactStep':
        if 'project' not in data:
            raise ValueError(f"Copy step must name a source 'project'. Found keys: {list(data.keys())}")
        return cls(
            project_name=data['project'] or "",
            selector=selector_from_dict(data.get('selector')),
            filter=data.get('filter') or "",
            target=data.get('target') or "",
            flatten=bool(data.get('flatten', False)),
            optional=bool(data.get('optional', False)),
            from_workspace=bool(data.get('from_workspace', False)),
        )
