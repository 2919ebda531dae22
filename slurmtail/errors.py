class SlurmtailError(Exception):
    """Base class for every error slurmtail reports to the user"""


class DirectiveNotFoundError(SlurmtailError, ValueError):
    """The batch script has no #SBATCH output directive"""


class SubmissionError(SlurmtailError, RuntimeError):
    """The submission command failed or printed no job id"""

    def __init__(self, message, returncode=None, stderr=""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class LogFileTimeoutError(SlurmtailError, TimeoutError):
    """The log file did not appear within the file timeout"""

    def __init__(self, path, timeout):
        super().__init__(
            f"Log file {path} did not appear within the timeout of {timeout:g} seconds."
        )
        self.path = path
        self.timeout = timeout


class ResumeFileError(SlurmtailError):
    pass


class ResumeFileMissingError(ResumeFileError, FileNotFoundError):
    """No resume file exists, or it cannot be read"""


class MalformedResumeFileError(ResumeFileError, ValueError):
    """The resume file exists but does not hold a job handle"""
