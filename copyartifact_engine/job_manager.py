import itertools
import threading
import yaml
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .job import Job, JobKind, combination_name, parse_combination
from .logger_setup import logger

# Called synchronously as listener(old_name, new_name) after a job is renamed
RenameListener = Callable[[str, str], None]


class JobManager:
    def __init__(self, jobs_config_dir: Path):
        self.jobs_config_dir = jobs_config_dir
        self.jobs: Dict[str, Job] = {}
        self._rename_listeners: List[RenameListener] = []
        self._lock = threading.Lock()
        self.load_jobs()

    def load_jobs(self):
        self.jobs = {}
        logger.info(f"Loading jobs from {self.jobs_config_dir}...")
        if not self.jobs_config_dir.exists() or not self.jobs_config_dir.is_dir():
            logger.warning(f"Jobs config directory not found or is not a directory: {self.jobs_config_dir}")
            return

        for config_file in sorted(self.jobs_config_dir.glob("*.yaml")):
            job = self._parse_job_config(config_file)
            if job:
                if job.name in self.jobs:
                    logger.warning(f"Duplicate job name '{job.name}' found in {config_file.name}. Overwriting previous definition.")
                self.jobs[job.name] = job
                logger.debug(f"Successfully loaded job: {job.name} from {config_file.name}")
        logger.info(f"Loaded {len(self.jobs)} jobs.")

    def _parse_job_config(self, config_file: Path) -> Optional[Job]:
        try:
            raw_yaml_content = config_file.read_text(encoding="utf-8")
            return Job.from_yaml(config_file, raw_yaml_content)
        except ValueError as ve:
            logger.error(f"Validation error parsing job config {config_file.name}: {ve}")
            return None
        except yaml.YAMLError as ye:
            logger.error(f"YAML syntax error in job config {config_file.name}: {ye}")
            return None
        except OSError as e:
            logger.error(f"Could not read job config {config_file.name}: {e}")
            return None

    def get_job(self, name: str) -> Optional[Job]:
        """Looks up a top-level job by name."""
        return self.jobs.get(name)

    def get_item(self, full_name: str) -> Optional[Job]:
        """Looks up a job, matrix configuration or module by its full name."""
        if "/" not in full_name:
            return self.get_job(full_name)
        parent_name, sub_name = full_name.split("/", 1)
        parent = self.get_job(parent_name)
        if parent is None:
            return None
        if parent.kind == JobKind.MATRIX:
            return self.find_configuration(parent, sub_name)
        if parent.kind == JobKind.MODULE_SET:
            return self.find_module(parent, sub_name)
        return None

    def list_jobs(self) -> List[Job]:
        return list(self.jobs.values())

    def reload_jobs(self):
        """Explicitly reloads all job configurations."""
        logger.info("Reloading all job configurations...")
        self.load_jobs()

    def configurations_of(self, job: Job) -> List[Job]:
        """One sub-job per axis combination, in axis declaration order."""
        if job.kind != JobKind.MATRIX:
            return []
        axis_names = list(job.axes)
        configurations = []
        for values in itertools.product(*(job.axes[a] for a in axis_names)):
            combination = dict(zip(axis_names, values))
            configurations.append(Job(
                name=f"{job.name}/{combination_name(combination)}",
                kind=JobKind.MATRIX_CONFIGURATION,
                acl=job.acl,
                parent_name=job.name,
                combination=combination,
            ))
        return configurations

    def modules_of(self, job: Job) -> List[Job]:
        if job.kind != JobKind.MODULE_SET:
            return []
        return [
            Job(name=f"{job.name}/{module}", kind=JobKind.MODULE, acl=job.acl, parent_name=job.name)
            for module in job.modules
        ]

    def find_configuration(self, job: Job, combination_text: str) -> Optional[Job]:
        try:
            wanted = parse_combination(combination_text)
        except ValueError as e:
            logger.warning(f"{job.name}: {e}")
            return None
        for configuration in self.configurations_of(job):
            if configuration.combination == wanted:
                return configuration
        return None

    def find_module(self, job: Job, module_name: str) -> Optional[Job]:
        return next((m for m in self.modules_of(job) if m.short_name == module_name), None)

    def parent_of(self, job: Job) -> Optional[Job]:
        return self.get_job(job.parent_name) if job.parent_name else None

    def add_job(self, job: Job, persist: bool = True):
        self.jobs[job.name] = job
        if persist:
            self.save_job(job)

    def save_job(self, job: Job):
        config_file = job.source_file or self.jobs_config_dir / f"{job.name}.yaml"
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            config_file.write_text(job.to_yaml(), encoding="utf-8")
            job.source_file = config_file
        except OSError as e:
            logger.error(f"Failed to save job config for '{job.name}' to {config_file}: {e}", exc_info=True)

    def add_rename_listener(self, listener: RenameListener):
        self._rename_listeners.append(listener)

    def rename_job(self, old_name: str, new_name: str) -> Job:
        with self._lock:
            job = self.jobs.get(old_name)
            if job is None:
                raise KeyError(f"Job '{old_name}' not found")
            if not new_name or "/" in new_name:
                raise ValueError(f"Invalid job name '{new_name}'")
            if new_name in self.jobs:
                raise ValueError(f"A job named '{new_name}' already exists")

            del self.jobs[old_name]
            job.name = new_name
            self.jobs[new_name] = job
            logger.info(f"Renamed job '{old_name}' to '{new_name}'")

        for listener in list(self._rename_listeners):
            listener(old_name, new_name)
        self.save_job(job)
        return job
