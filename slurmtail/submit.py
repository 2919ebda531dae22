import logging
import subprocess

from pathlib import Path

from slurmtail import conf
from slurmtail.errors import SubmissionError

logger = logging.getLogger(__name__)


def parse_job_id(stdout):
    """
    Finds the job id in the output of sbatch, which is either
    "Submitted batch job 12345" or, with --parsable, "12345" or "12345;cluster"
    """
    for word in stdout.split():
        word = word.split(";")[0]
        if word.isascii() and word.isdigit():
            return int(word)
    return None


def submit_script(script_path, command=None, extra_args=()):
    """Submits the batch script and returns the job id assigned by Slurm.

    Args:
        script_path: Path to the batch script
        command: Submission command as an argument list, defaults to
            SLURMTAIL_SBATCH or sbatch
        extra_args: Additional arguments passed before the script path

    Returns:
        The numeric job id
    """
    if command is None:
        command = conf.sbatch_command()
    args = [str(arg) for arg in [*command, *extra_args, Path(script_path)]]

    logger.debug(f"Attempting to run: {' '.join(args)}")
    try:
        p = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            universal_newlines=True,
        )
    except FileNotFoundError:
        raise SubmissionError(f"Could not find the submission command {args[0]!r}. Is Slurm installed?")
    except PermissionError:
        raise SubmissionError(f"Could not execute the submission command {args[0]!r}.")

    stderr = p.stderr.strip()
    if p.returncode != 0:
        raise SubmissionError(
            f"{args[0]} failed with exit code {p.returncode}:\n{stderr}",
            returncode=p.returncode,
            stderr=stderr,
        )
    if stderr:
        logger.warning(stderr)

    job_id = parse_job_id(p.stdout)
    if job_id is None:
        raise SubmissionError(
            f"Could not find a job id in the output of {args[0]}:\n{p.stdout.strip()}",
            returncode=p.returncode,
            stderr=stderr,
        )
    return job_id
