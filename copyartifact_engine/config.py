import os
from dataclasses import dataclass
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parent.parent

DATA_DIR_ENV = "COPYARTIFACT_DATA_DIR"
JOBS_DIR_ENV = "COPYARTIFACT_JOBS_DIR"
LOG_LEVEL_ENV = "COPYARTIFACT_LOG_LEVEL"

JOBS_CONFIG_DIR_NAME = "jobs_config"
BUILDS_DIR_NAME = "builds"
BUILD_LOGS_DIR_NAME = "build_logs"

# Published after a successful copy, suffixed with the source job's name.
BUILD_NUMBER_VAR_PREFIX = "COPYARTIFACT_BUILD_NUMBER_"
BUILD_RESULT_VAR_PREFIX = "COPYARTIFACT_BUILD_RESULT_"


@dataclass
class Settings:
    data_dir: Path
    jobs_dir: Path
    log_level: str = "DEBUG"

    @property
    def builds_dir(self) -> Path:
        return self.data_dir / BUILDS_DIR_NAME

    @property
    def build_logs_dir(self) -> Path:
        return self.data_dir / BUILD_LOGS_DIR_NAME

    @classmethod
    def from_env(cls, data_dir: Path = None, jobs_dir: Path = None) -> 'Settings':
        """Explicit arguments win over environment variables, which win over repo defaults."""
        if data_dir is None:
            data_dir = Path(os.environ.get(DATA_DIR_ENV, REPO_ROOT / "data"))
        if jobs_dir is None:
            jobs_dir = Path(os.environ.get(JOBS_DIR_ENV, REPO_ROOT / JOBS_CONFIG_DIR_NAME))
        return cls(
            data_dir=Path(data_dir),
            jobs_dir=Path(jobs_dir),
            log_level=os.environ.get(LOG_LEVEL_ENV, "DEBUG").upper(),
        )
