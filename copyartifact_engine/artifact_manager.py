import re
import shutil
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from .build import Build
from .logger_setup import logger

ARCHIVE_DIR_NAME = "archive"


def split_patterns(includes: str) -> List[str]:
    """Comma-separated include list -> individual patterns; blanks are dropped."""
    if not includes:
        return []
    return [p.strip() for p in includes.split(",") if p.strip()]


@lru_cache(maxsize=256)
def _pattern_regex(pattern: str) -> "re.Pattern":
    """Ant-style glob -> regex over '/'-separated relative paths.

    ``*`` and ``?`` stay within one path segment, a ``**`` segment spans any
    number of directories and a trailing ``/`` means everything below it.
    """
    pattern = pattern.replace("\\", "/").lstrip("/")
    if pattern.endswith("/"):
        pattern += "**"
    segments = pattern.split("/")
    regex = ""
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == "**":
            regex += ".*" if last else "(?:[^/]+/)*"
            continue
        for char in segment:
            if char == "*":
                regex += "[^/]*"
            elif char == "?":
                regex += "[^/]"
            else:
                regex += re.escape(char)
        if not last:
            regex += "/"
    return re.compile(regex)


def matches_any(relative_path: str, patterns: List[str]) -> bool:
    if not patterns:
        return True
    return any(_pattern_regex(p).fullmatch(relative_path) for p in patterns)


def list_matching(root: Path, includes: str) -> List[str]:
    """Relative posix paths of the files under ``root`` matching ``includes``, sorted."""
    if not root.is_dir():
        return []
    patterns = split_patterns(includes)
    found = []
    for path in root.rglob("*"):
        if path.is_file():
            relative = path.relative_to(root).as_posix()
            if matches_any(relative, patterns):
                found.append(relative)
    return sorted(found)


class ArtifactManager:
    def __init__(self, builds_root_dir: Path):
        self.builds_root_dir = builds_root_dir

    def archive_dir(self, job_name: str, build_number: int) -> Path:
        return self.builds_root_dir / job_name / str(build_number) / ARCHIVE_DIR_NAME

    def artifacts_of(self, build: Build) -> Optional[Path]:
        """Root of the build's archived artifacts, or None if it archived nothing."""
        archive = self.archive_dir(build.job_name, build.number)
        return archive if archive.is_dir() else None

    def archive_artifacts(self, workspace_path: Path, build: Build, includes: str) -> List[str]:
        """Copies workspace files matching ``includes`` into the build's archive."""
        if not includes:
            return []

        build_artifact_dir = self.archive_dir(build.job_name, build.number)
        logger.info(f"Archiving artifacts for {build.job_name} #{build.number} to {build_artifact_dir}")

        archived = []
        for relative in list_matching(workspace_path, includes):
            dest_file_path = build_artifact_dir / relative
            try:
                dest_file_path.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(workspace_path / relative, dest_file_path)
                archived.append(relative)
                logger.debug(f"Archived {relative}")
            except OSError as e:
                logger.error(f"Failed to archive {workspace_path / relative}: {e}")
        if not archived:
            logger.warning(f"No files found for artifact pattern(s) '{includes}' in {workspace_path}")
        return archived

    def copy_files(self, source_root: Path, includes: str, target_dir: Path, flatten: bool = False) -> int:
        """Copies files under ``source_root`` matching ``includes`` into ``target_dir``.

        Relative directories are kept unless ``flatten`` is set, in which case
        every file lands directly in ``target_dir`` under its base name and a
        later file with the same name overwrites an earlier one (paths are
        visited in sorted order). Returns the number of files copied; zero is
        a normal result.
        """
        if source_root is None or not source_root.is_dir():
            logger.warning(f"Copy source {source_root} does not exist")
            return 0

        copied = 0
        written = set()
        for relative in list_matching(source_root, includes):
            source_file = source_root / relative
            dest_file_path = target_dir / (source_file.name if flatten else relative)
            if dest_file_path in written:
                logger.debug(f"Flattened copy of {relative} overwrites {dest_file_path.name}")
            dest_file_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_file, dest_file_path)
            written.add(dest_file_path)
            copied += 1
        return copied
