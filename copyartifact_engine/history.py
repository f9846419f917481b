import dataclasses
import json
import shutil
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from .artifact_manager import ArtifactManager
from .build import Build, BuildResult, PERMALINKS
from .job import Job
from .logger_setup import logger

BUILD_INFO_FILE_NAME = "build_info.json"

JobRef = Union[Job, str]


def _job_name(job: JobRef) -> str:
    return job if isinstance(job, str) else job.name


class BuildHistory:
    """Builds of every job, stored as ``<builds_root>/<job full name>/<number>/build_info.json``.

    Reads are served from a per-job cache that is filled on first use and
    kept current by :meth:`save_build`; new builds are only ever appended.
    """

    def __init__(self, builds_root_dir: Path, artifact_manager: Optional[ArtifactManager] = None):
        self.builds_root_dir = builds_root_dir
        self.artifact_manager = artifact_manager or ArtifactManager(builds_root_dir)
        self._cache: Dict[str, List[Build]] = {}
        self._lock = threading.RLock()
        self.builds_root_dir.mkdir(parents=True, exist_ok=True)

    def _load_builds(self, job_name: str) -> List[Build]:
        job_builds_dir = self.builds_root_dir / job_name
        builds = []
        if not job_builds_dir.is_dir():
            return builds
        for build_dir in job_builds_dir.iterdir():
            # Sub-job histories live next to the numbered build dirs
            if not build_dir.is_dir() or not build_dir.name.isdigit():
                continue
            meta_file = build_dir / BUILD_INFO_FILE_NAME
            if not meta_file.exists():
                continue
            try:
                with open(meta_file, "r", encoding="utf-8") as f:
                    builds.append(Build.from_dict(json.load(f)))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.warning(f"Could not parse {meta_file}: {e}")
            except OSError as e:
                logger.error(f"Error reading build metadata {meta_file}: {e}")
        builds.sort(key=lambda b: b.number, reverse=True)
        return builds

    def builds_of(self, job: JobRef) -> List[Build]:
        """All builds of ``job``, newest first."""
        name = _job_name(job)
        with self._lock:
            if name not in self._cache:
                self._cache[name] = self._load_builds(name)
            return list(self._cache[name])

    def most_recent_completed(self, job: JobRef) -> Optional[Build]:
        return next((b for b in self.builds_of(job) if b.is_completed), None)

    def previous_completed(self, build: Build) -> Optional[Build]:
        for candidate in self.builds_of(build.job_name):
            if candidate.number < build.number and candidate.is_completed:
                return candidate
        return None

    def build_by_number(self, job: JobRef, number: int) -> Optional[Build]:
        return next((b for b in self.builds_of(job) if b.number == number), None)

    def resolve_permalink(self, job: JobRef, permalink: str) -> Optional[Build]:
        predicate = PERMALINKS.get(permalink)
        if predicate is None:
            raise ValueError(f"Unknown permalink '{permalink}'")
        return next((b for b in self.builds_of(job) if predicate(b)), None)

    def _get_next_build_number(self, job_name: str) -> int:
        builds = self.builds_of(job_name)
        return builds[0].number + 1 if builds else 1

    def save_build(self, build: Build):
        build_meta_file = self.builds_root_dir / build.job_name / str(build.number) / BUILD_INFO_FILE_NAME
        try:
            build_meta_file.parent.mkdir(parents=True, exist_ok=True)
            with open(build_meta_file, "w", encoding="utf-8") as f:
                json.dump(build.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"File I/O error saving {build.job_name} #{build.number} to {build_meta_file}: {e}", exc_info=True)
            raise

        with self._lock:
            builds = [b for b in self.builds_of(build.job_name) if b.number != build.number]
            builds.append(build)
            builds.sort(key=lambda b: b.number, reverse=True)
            self._cache[build.job_name] = builds

    def record_build(self, job: JobRef, result: Optional[BuildResult] = BuildResult.SUCCESS,
                     workspace: Optional[Path] = None, archive: str = "",
                     keep_forever: bool = False, parameters: Optional[Dict[str, str]] = None,
                     parent_number: Optional[int] = None, number: Optional[int] = None,
                     display_name: Optional[str] = None) -> Build:
        """Adds a build to the job's history and archives its artifacts.

        ``number`` may skip ahead of the next free build number but never
        reuse or go below it. A ``result`` of None records a build that is
        still running.
        """
        name = _job_name(job)
        with self._lock:
            next_number = self._get_next_build_number(name)
            if number is None:
                number = next_number
            elif number < next_number:
                raise ValueError(f"Build number {number} of '{name}' is already taken (next is {next_number})")

            now = datetime.now(timezone.utc).isoformat()
            build = Build(
                number=number,
                job_name=name,
                result=result,
                start_time=now,
                end_time=now if result is not None else None,
                keep_forever=keep_forever,
                display_name=display_name,
                workspace_path=str(workspace) if workspace else None,
                parent_number=parent_number,
                parameters=dict(parameters or {}),
            )
            self.save_build(build)

        if workspace and archive:
            self.artifact_manager.archive_artifacts(Path(workspace), build, archive)
        logger.info(f"Recorded {name} #{build.number} ({result.value if result else 'RUNNING'})")
        return build

    def set_keep_forever(self, job: JobRef, number: int, keep: bool = True) -> Build:
        with self._lock:
            build = self.build_by_number(job, number)
            if build is None:
                raise KeyError(f"Build #{number} of '{_job_name(job)}' not found")
            # The cached build only changes once the new flag is on disk
            updated = dataclasses.replace(build, keep_forever=keep)
            self.save_build(updated)
        return updated

    def on_job_renamed(self, old_name: str, new_name: str):
        """Moves the history (including sub-job histories) to the new job name."""
        old_dir = self.builds_root_dir / old_name
        new_dir = self.builds_root_dir / new_name
        with self._lock:
            if old_dir.is_dir():
                new_dir.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(old_dir), str(new_dir))
                for meta_file in new_dir.rglob(BUILD_INFO_FILE_NAME):
                    try:
                        with open(meta_file, "r", encoding="utf-8") as f:
                            data = json.load(f)
                        data["job_name"] = new_name + data["job_name"][len(old_name):]
                        with open(meta_file, "w", encoding="utf-8") as f:
                            json.dump(data, f, indent=2)
                    except (OSError, json.JSONDecodeError, KeyError) as e:
                        logger.error(f"Could not update job name in {meta_file}: {e}")
                logger.info(f"Moved build history of '{old_name}' to {new_dir}")
            self._cache = {
                name: builds for name, builds in self._cache.items()
                if name != old_name and not name.startswith(old_name + "/")
            }
