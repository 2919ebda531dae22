# Create the base logger
import logging as _logging
_logger = _logging.getLogger(__name__)
_logger.setLevel(_logging.DEBUG)

__version__ = "0.3.0"

# Hidden file in the working directory that links a submission
# to its log file so that `slurmtail resume` can re-attach
RESUME_FILE_NAME = "._slurmtail"

from slurmtail.errors import (
    SlurmtailError,
    DirectiveNotFoundError,
    SubmissionError,
    LogFileTimeoutError,
    ResumeFileError,
    ResumeFileMissingError,
    MalformedResumeFileError,
)
from slurmtail.directives import (
    ScriptDirectives,
    extract_output_pattern,
    extract_job_name,
    format_log_path,
    resolve_log_path,
    read_script,
)
from slurmtail.submit import submit_script
from slurmtail.state import JobHandle, save_handle, load_handle, clean_handle
from slurmtail.follow import Timeouts, LogFollower
