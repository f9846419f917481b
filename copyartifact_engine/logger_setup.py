import logging
import os
import shutil
import coloredlogs
from pathlib import Path

from .config import LOG_LEVEL_ENV

LOGGER_NAME = "copyartifact"

def setup_global_logger():
    logger = logging.getLogger(LOGGER_NAME)
    level = os.environ.get(LOG_LEVEL_ENV, "DEBUG").upper()
    logger.setLevel(level)

    # coloredlogs installs its own console handler on 'logger'.
    coloredlogs.install(level=level, logger=logger, fmt='%(asctime)s %(name)s %(levelname)s %(message)s')
    return logger

def get_build_logger(logs_dir: Path, job_name: str, build_number: int):
    """Creates a file logger for one build of a job (the build's console)."""
    build_log_dir = logs_dir / job_name
    build_log_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = build_log_dir / f"{build_number}.log"

    logger = logging.getLogger(f"{LOGGER_NAME}.build.{job_name}.{build_number}")
    logger.setLevel(logging.DEBUG)
    # Build output stays out of the global console
    logger.propagate = False

    if not any(isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file_path) for h in logger.handlers):
        fh = logging.FileHandler(log_file_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        logger.addHandler(fh)

    return logger, str(log_file_path)

def close_build_logger(build_logger: logging.Logger):
    for handler in list(build_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            build_logger.removeHandler(handler)

def move_build_logs(logs_dir: Path, old_job_name: str, new_job_name: str):
    """Moves a renamed job's build console logs (sub-job logs included) to its new name."""
    old_dir = logs_dir / old_job_name
    if not old_dir.is_dir():
        return
    new_dir = logs_dir / new_job_name
    new_dir.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(old_dir), str(new_dir))
    logging.getLogger(LOGGER_NAME).info(f"Moved build logs of '{old_job_name}' to {new_dir}")


# Initialize global logger
logger = setup_global_logger()
