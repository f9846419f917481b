"""Include-pattern matching and file copying."""

from __future__ import annotations

import pytest

from copy_test_helpers import ARTIFACT_FILES, write_workspace
from copyartifact_engine.artifact_manager import ArtifactManager, list_matching, matches_any, split_patterns
from copyartifact_engine.build import Build


@pytest.fixture
def source(tmp_path):
    return write_workspace(tmp_path / "source", ARTIFACT_FILES)


@pytest.fixture
def manager(tmp_path):
    return ArtifactManager(tmp_path / "builds")


def test_split_patterns():
    assert split_patterns("a/*.txt, ,b/** ,") == ["a/*.txt", "b/**"]
    assert split_patterns("") == []


@pytest.mark.parametrize(("path", "pattern", "expected"), [
    ("foo.txt", "*.txt", True),
    ("subdir/subfoo.txt", "*.txt", False),
    ("subdir/subfoo.txt", "**/*.txt", True),
    ("foo.txt", "**/*.txt", True),
    ("subdir/subfoo.txt", "*r/*.txt", True),
    ("deepfoo/a/b/c.log", "deep*/**", True),
    ("deepfoo/a/b/c.log", "deepfoo/", True),
    ("deepfoo/a/b/c.log", "deepfoo/**/c.log", True),
    ("deepfoo/c.log", "deepfoo/**/c.log", True),
    ("deepfoo/a/b/c.log", "deepfoo/*/c.log", False),
    ("foo.txt", "fo?.txt", True),
    ("foo.txt", "f?.txt", False),
    ("foo+txt", "foo.txt", False),
])
def test_pattern_matching(path, pattern, expected):
    assert matches_any(path, [pattern]) is expected


def test_empty_pattern_list_matches_everything():
    assert matches_any("any/where/file.bin", [])


def test_list_matching_is_sorted_and_relative(source):
    assert list_matching(source, "") == ["deepfoo/a/b/c.log", "foo.txt", "subdir/subfoo.txt"]
    assert list_matching(source, "**/bogus*, **/sub*, bogus/**") == ["subdir/subfoo.txt"]
    assert list_matching(source / "missing", "") == []


def test_copy_keeps_relative_paths(manager, source, tmp_path):
    target = tmp_path / "target"

    assert manager.copy_files(source, "", target) == 3
    assert (target / "deepfoo/a/b/c.log").read_text(encoding="utf-8") == "c"


def test_copy_flattened(manager, source, tmp_path):
    target = tmp_path / "target"

    assert manager.copy_files(source, "**/*.txt", target, flatten=True) == 2
    assert sorted(p.name for p in target.iterdir()) == ["foo.txt", "subfoo.txt"]


def test_flatten_collision_last_path_wins(manager, tmp_path):
    source = write_workspace(tmp_path / "source", {"a/same.txt": "from a", "b/same.txt": "from b"})
    target = tmp_path / "target"

    manager.copy_files(source, "", target, flatten=True)

    assert [p.name for p in target.iterdir()] == ["same.txt"]
    assert (target / "same.txt").read_text(encoding="utf-8") == "from b"


def test_copy_twice_is_idempotent(manager, source, tmp_path):
    target = tmp_path / "target"

    manager.copy_files(source, "", target)
    manager.copy_files(source, "", target)

    assert list_matching(target, "") == list_matching(source, "")


def test_copy_without_matches(manager, source, tmp_path):
    target = tmp_path / "target"

    assert manager.copy_files(source, "*.jar", target) == 0
    assert not target.exists()


def test_copy_from_missing_source(manager, tmp_path):
    assert manager.copy_files(tmp_path / "gone", "", tmp_path / "target") == 0


def test_archive_artifacts(manager, source):
    build = Build(number=3, job_name="other")

    archived = manager.archive_artifacts(source, build, "**/*.txt")

    assert archived == ["foo.txt", "subdir/subfoo.txt"]
    assert manager.artifacts_of(build) == manager.archive_dir("other", 3)
    assert (manager.artifacts_of(build) / "subdir/subfoo.txt").is_file()


def test_build_without_archive(manager, source):
    build = Build(number=1, job_name="other")

    assert manager.archive_artifacts(source, build, "") == []
    assert manager.artifacts_of(build) is None
