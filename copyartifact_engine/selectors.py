"""Strategies that pick which build of a source job to copy from.

A selector normally overrides just :meth:`BuildSelector.is_selectable`, and
:meth:`BuildSelector.get_build` walks the candidates (or the job's completed
builds, newest first) and returns the first match. Selectors that know the
build directly (by number, by permalink) override ``get_build`` instead.

Selectors written against the older two-argument ``get_build(job, history, env)``
API subclass :class:`LegacyBuildSelector`; registration wraps them in
:class:`LegacySelectorAdapter` so the rest of the engine only ever sees the
current contract.
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, TYPE_CHECKING

from .build import Build, BuildResult, PERMALINKS
from .errors import InvalidSelectorExpressionError
from .expander import expand
from .logger_setup import logger

if TYPE_CHECKING:
    from .history import BuildHistory
    from .job import Job


class BuildSelector(ABC):
    type_name: str = None
    # Set on selectors whose presence means "copy from the live workspace"
    uses_workspace: bool = False

    def get_build(self, job: 'Job', history: 'BuildHistory', env: Mapping[str, str],
                  run_list: Optional[Iterable[Build]] = None) -> Optional[Build]:
        """Returns the build to copy from, or None when nothing matches.

        ``run_list`` is tested in the order given; when it is None the job's
        completed builds are walked from the most recent one backwards.
        """
        if job is None:
            raise ValueError("A selector needs a job to select from")

        if run_list is not None:
            for run in run_list:
                if self.is_selectable(run, env):
                    return run
            return None

        run = history.most_recent_completed(job)
        while run is not None:
            if self.is_selectable(run, env):
                return run
            logger.debug(f"{self.describe()}: skipping {job.name} #{run.number} ({run.result.value})")
            run = history.previous_completed(run)
        return None

    def is_selectable(self, run: Build, env: Mapping[str, str]) -> bool:
        return False

    def describe(self) -> str:
        return self.type_name or type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type_name}

    def __eq__(self, other):
        return type(self) is type(other) and self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"{type(self).__name__}({self.to_dict()})"


class LegacyBuildSelector(ABC):
    """Older selector API: no candidate list, the selector walks history itself."""
    type_name: str = None

    @abstractmethod
    def get_build(self, job: 'Job', history: 'BuildHistory', env: Mapping[str, str]) -> Optional[Build]:
        ...

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type_name}


class LegacySelectorAdapter(BuildSelector):
    """Presents a :class:`LegacyBuildSelector` through the current contract.

    The legacy selector always does its own traversal, so any candidate list
    is ignored.
    """

    def __init__(self, legacy: LegacyBuildSelector):
        self.legacy = legacy
        self.type_name = legacy.type_name
        self.uses_workspace = getattr(legacy, "uses_workspace", False)

    def get_build(self, job, history, env, run_list=None):
        if job is None:
            raise ValueError("A selector needs a job to select from")
        if run_list is not None:
            logger.debug(f"Legacy selector {self.describe()} ignores the supplied candidate list")
        return self.legacy.get_build(job, history, env)

    def to_dict(self) -> Dict[str, Any]:
        return self.legacy.to_dict()


class StatusBuildSelector(BuildSelector):
    """Most recent successful build, or most recent stable one when ``stable`` is set."""
    type_name = "status"

    def __init__(self, stable: bool = False):
        self.stable = stable

    def is_selectable(self, run, env):
        threshold = BuildResult.SUCCESS if self.stable else BuildResult.UNSTABLE
        return run.result is not None and run.result.is_better_or_equal_to(threshold)

    def describe(self) -> str:
        return "latest stable build" if self.stable else "latest successful build"

    def to_dict(self):
        return {"type": self.type_name, "stable": self.stable}


class SavedBuildSelector(BuildSelector):
    type_name = "saved"

    def is_selectable(self, run, env):
        return run.keep_forever

    def describe(self) -> str:
        return "latest saved build"


class SpecificBuildSelector(BuildSelector):
    """A build chosen by number; the number may be a parameter like ``$BUILD``."""
    type_name = "specific"

    def __init__(self, build_number: str):
        self.build_number = "" if build_number is None else str(build_number)

    def resolve_number(self, env: Mapping[str, str]) -> int:
        expanded = expand(self.build_number, env).strip()
        try:
            return int(expanded)
        except ValueError:
            raise InvalidSelectorExpressionError(
                f"Build number '{self.build_number}' expanded to '{expanded}', which is not an integer")

    def get_build(self, job, history, env, run_list=None):
        if job is None:
            raise ValueError("A selector needs a job to select from")
        try:
            number = self.resolve_number(env)
        except InvalidSelectorExpressionError as e:
            logger.warning(str(e))
            return None
        if run_list is not None:
            return next((run for run in run_list if run.number == number), None)
        return history.build_by_number(job, number)

    def is_selectable(self, run, env):
        try:
            return run.number == self.resolve_number(env)
        except InvalidSelectorExpressionError:
            return False

    def describe(self) -> str:
        return f"build #{self.build_number}"

    def to_dict(self):
        return {"type": self.type_name, "build_number": self.build_number}


class WorkspaceSelector(BuildSelector):
    """Copies from the live workspace of the most recent completed build."""
    type_name = "workspace"
    uses_workspace = True

    def is_selectable(self, run, env):
        return True

    def describe(self) -> str:
        return "workspace of latest completed build"


class PermalinkBuildSelector(BuildSelector):
    """Build a named permalink (``lastSuccessfulBuild``, ...) points at."""
    type_name = "permalink"

    def __init__(self, permalink: str):
        if permalink not in PERMALINKS:
            raise ValueError(f"Unknown permalink '{permalink}'. Expected one of: {', '.join(PERMALINKS)}")
        self.permalink = permalink

    def get_build(self, job, history, env, run_list=None):
        if job is None:
            raise ValueError("A selector needs a job to select from")
        target = history.resolve_permalink(job, self.permalink)
        if run_list is None or target is None:
            return target
        return next((run for run in run_list if run.number == target.number), None)

    def describe(self) -> str:
        return self.permalink

    def to_dict(self):
        return {"type": self.type_name, "permalink": self.permalink}


_SELECTOR_FACTORIES: Dict[str, Callable[[dict], BuildSelector]] = {}


def register_selector(type_name: str, factory: Callable[[dict], Any], legacy: bool = False):
    """Makes a selector type available to job configuration.

    ``factory`` receives the selector's config mapping. Legacy selectors are
    wrapped once here instead of being detected on every call.
    """
    if legacy:
        def _wrapped(config: dict, _factory=factory) -> BuildSelector:
            return LegacySelectorAdapter(_factory(config))
        _SELECTOR_FACTORIES[type_name] = _wrapped
    else:
        _SELECTOR_FACTORIES[type_name] = factory


def selector_types() -> list:
    return sorted(_SELECTOR_FACTORIES)


def selector_from_dict(config: Optional[dict]) -> BuildSelector:
    if config is None:
        return StatusBuildSelector()
    if isinstance(config, str):
        config = {"type": config}
    if not isinstance(config, dict) or 'type' not in config:
        raise ValueError(f"Selector configuration must be a mapping with a 'type' key. Found: {config!r}")

    factory = _SELECTOR_FACTORIES.get(config['type'])
    if factory is None:
        raise ValueError(f"Unknown selector type '{config['type']}'. Known types: {', '.join(selector_types())}")
    return factory(config)


register_selector("status", lambda c: StatusBuildSelector(stable=bool(c.get('stable', False))))
register_selector("saved", lambda c: SavedBuildSelector())
register_selector("specific", lambda c: SpecificBuildSelector(c.get('build_number', "")))
register_selector("workspace", lambda c: WorkspaceSelector())
register_selector("permalink", lambda c: PermalinkBuildSelector(c.get('permalink', "")))
