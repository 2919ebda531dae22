"""
The resume file: a hidden JSON file in the working directory holding the
job id and log path of the last submission, so that a later invocation
can re-attach to the same log.
"""

import json
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from slurmtail import RESUME_FILE_NAME
from slurmtail.errors import ResumeFileMissingError, MalformedResumeFileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobHandle:
    job_id: Optional[int]
    output_path: Path

    def to_dict(self):
        return {"job_id": self.job_id, "output_path": str(self.output_path)}

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise MalformedResumeFileError("Resume file does not contain a JSON object.")
        output_path = data.get("output_path")
        if not isinstance(output_path, str) or output_path == "":
            raise MalformedResumeFileError("Resume file has no log file path.")
        job_id = data.get("job_id")
        # bool is an int subclass
        if job_id is not None and (isinstance(job_id, bool) or not isinstance(job_id, int)):
            raise MalformedResumeFileError(f"Resume file has an invalid job id: {job_id!r}")
        return cls(job_id=job_id, output_path=Path(output_path))


def resume_file_path(directory):
    return Path(directory) / RESUME_FILE_NAME


def save_handle(handle, directory):
    """Writes the job handle to the resume file in directory, replacing any previous one"""
    path = resume_file_path(directory)
    handle = JobHandle(handle.job_id, Path(handle.output_path).absolute())
    with path.open("w") as f:
        json.dump(handle.to_dict(), f)
        f.write("\n")
    logger.debug(f"Wrote resume file {path}")
    return path


def load_handle(directory):
    path = resume_file_path(directory)
    try:
        content = path.read_text()
    except FileNotFoundError:
        raise ResumeFileMissingError(
            f"No resume file found in {Path(directory).absolute()}. "
            "Submit a job with 'slurmtail run' first."
        )
    except OSError as e:
        raise ResumeFileMissingError(f"Could not read resume file {path}: {e.strerror or e}")

    if content.strip() == "":
        raise MalformedResumeFileError(f"Resume file {path} is empty.")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedResumeFileError(f"Resume file {path} is not valid JSON: {e}")

    try:
        return JobHandle.from_dict(data)
    except MalformedResumeFileError as e:
        raise MalformedResumeFileError(f"{e} ({path})")


def clean_handle(directory):
    """Removes the resume file. Returns its path, or None if there was none."""
    path = resume_file_path(directory)
    try:
        path.unlink()
    except FileNotFoundError:
        return None
    logger.debug(f"Removed resume file {path}")
    return path
