"""Loading job definitions and deriving their sub-jobs."""

from __future__ import annotations

from pathlib import Path

import pytest

from copyartifact_engine.job import Job, JobKind
from copyartifact_engine.job_manager import JobManager
from copyartifact_engine.selectors import SpecificBuildSelector, StatusBuildSelector

CONSUMER_YAML = """
job:
  name: consumer
  description: Pulls in what the others built
  copy_artifacts:
    - project: matrix/OS=$OS
      selector:
        type: specific
        build_number: $UPSTREAM_BUILD
      filter: "**/*.jar"
      target: libs
      flatten: true
      optional: true
    - project: plain
"""

MATRIX_YAML = """
job:
  name: matrix
  kind: matrix
  axes:
    OS: [linux, windows]
    JDK: ["8", "17"]
  acl:
    users: [joe]
"""


def _write(jobs_dir: Path, name: str, content: str) -> Path:
    path = jobs_dir / f"{name}.yaml"
    path.write_text(content, encoding="utf-8")
    return path


def test_load_jobs(settings):
    _write(settings.jobs_dir, "consumer", CONSUMER_YAML)
    _write(settings.jobs_dir, "matrix", MATRIX_YAML)

    manager = JobManager(settings.jobs_dir)

    consumer = manager.get_job("consumer")
    first, second = consumer.copy_steps
    assert first.project_name == "matrix/OS=$OS"
    assert first.selector == SpecificBuildSelector("$UPSTREAM_BUILD")
    assert (first.filter, first.target, first.flatten, first.optional) == ("**/*.jar", "libs", True, True)
    assert second.selector == StatusBuildSelector()
    assert manager.get_job("matrix").acl.users == ["joe"]


@pytest.mark.parametrize("content", [
    "job:\n  kind: freestyle\n",
    "job:\n  name: a/b\n",
    "job:\n  name: m\n  kind: matrix\n",
    "job:\n  name: c\n  kind: matrix_configuration\n",
    "job:\n  name: f\n  axes: {A: [x]}\n",
    "job:\n  name: f\n  modules: ['g:a']\n",
    "job:\n  name: m\n  kind: matrix\n  axes: {A: [x], B: []}\n",
    "job:\n  name: s\n  kind: module_set\n  modules: ['g:$a']\n",
    "job:\n  name: s\n  kind: module_set\n  modules: ['g/a']\n",
    "job:\n  name: s\n  copy_artifacts:\n    - filter: '*'\n",
    "job:\n  name: s\n  copy_artifacts:\n    - project: x\n      selector: {type: nightly}\n",
    "job: [unclosed\n",
])
def test_invalid_definitions_are_skipped(settings, content):
    _write(settings.jobs_dir, "bad", content)
    _write(settings.jobs_dir, "good", "job:\n  name: good\n")

    manager = JobManager(settings.jobs_dir)

    assert [j.name for j in manager.list_jobs()] == ["good"]


def test_matrix_configurations(settings):
    _write(settings.jobs_dir, "matrix", MATRIX_YAML)
    manager = JobManager(settings.jobs_dir)
    matrix = manager.get_job("matrix")

    configurations = manager.configurations_of(matrix)

    assert [c.short_name for c in configurations] == [
        "OS=linux,JDK=8", "OS=linux,JDK=17", "OS=windows,JDK=8", "OS=windows,JDK=17",
    ]
    assert all(c.acl is matrix.acl and c.parent_name == "matrix" for c in configurations)
    assert manager.get_item("matrix/JDK=17,OS=windows").name == "matrix/OS=windows,JDK=17"


def test_module_lookup(settings):
    manager = JobManager(settings.jobs_dir)
    manager.add_job(Job(name="mvn", kind=JobKind.MODULE_SET, modules=["g:core"]), persist=False)

    module = manager.get_item("mvn/g:core")

    assert module.kind == JobKind.MODULE
    assert manager.parent_of(module).name == "mvn"
    assert manager.get_item("mvn/g:other") is None
    assert manager.get_item("missing/g:core") is None


def test_saved_job_round_trips(settings):
    manager = JobManager(settings.jobs_dir)
    _write(settings.jobs_dir, "consumer", CONSUMER_YAML)
    original = JobManager(settings.jobs_dir).get_job("consumer")

    manager.save_job(Job(name="copy", copy_steps=original.copy_steps))
    reloaded = JobManager(settings.jobs_dir).get_job("copy")

    assert [s.to_dict() for s in reloaded.copy_steps] == [s.to_dict() for s in original.copy_steps]
