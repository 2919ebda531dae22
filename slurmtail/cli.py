import os
import sys
import getpass
import logging

from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from slurmtail import __version__, conf
from slurmtail.errors import SlurmtailError
from slurmtail.directives import read_script, format_log_path, resolve_log_path
from slurmtail.submit import submit_script
from slurmtail.state import JobHandle, save_handle, load_handle, clean_handle
from slurmtail.follow import Timeouts, LogFollower
from slurmtail.utils import get_logger

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Submits Slurm batch jobs and follows their log files.",
)

logger = logging.getLogger("slurmtail")


TimeoutOption = Annotated[Optional[float], typer.Option(
    "--timeout", "-t",
    help="Stop after this many seconds without new output "
         f"(default: $SLURMTAIL_TIMEOUT or {conf.DEFAULT_TIMEOUT})",
    show_default=False,
)]
FileTimeoutOption = Annotated[Optional[float], typer.Option(
    "--file-timeout", "-f",
    help="Give up if the log file has not appeared after this many seconds "
         f"(default: $SLURMTAIL_FILE_TIMEOUT or {conf.DEFAULT_FILE_TIMEOUT})",
    show_default=False,
)]
NoTimeoutOption = Annotated[bool, typer.Option(
    "--no-timeout", "-N",
    help="Keep following no matter how long the log stays quiet",
)]
NoFileTimeoutOption = Annotated[bool, typer.Option(
    "--no-file-timeout", "-n",
    help="Wait for the log file to appear no matter how long it takes",
)]
LinesOption = Annotated[Optional[int], typer.Option(
    "--lines", "-l",
    min=0,
    help="Number of existing lines to show when the log is opened "
         f"(default: $SLURMTAIL_TAIL_LINES or {conf.DEFAULT_TAIL_LINES})",
    show_default=False,
)]


def _fail(error):
    logger.debug("Caught exception:", exc_info=True)
    logger.error(str(error))
    raise typer.Exit(code=1)


def _timeouts(timeout, file_timeout, no_timeout, no_file_timeout):
    if no_timeout:
        timeout = None
    elif timeout is None:
        timeout = conf.timeout()
    if no_file_timeout:
        file_timeout = None
    elif file_timeout is None:
        file_timeout = conf.file_timeout()
    return Timeouts(file_timeout=file_timeout, inactivity_timeout=timeout)


def _current_user():
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return None


def _follow(log_path, timeouts, lines):
    try:
        follower = LogFollower(log_path, timeouts=timeouts, tail_lines=lines)
        follower.follow_to(sys.stdout)
    except KeyboardInterrupt:
        # exit gracefully if user presses Ctrl+C
        logger.info(" Exiting...")
    except (SlurmtailError, OSError, ValueError) as e:
        _fail(e)


def version_callback(value: bool):
    if value:
        typer.echo(f"slurmtail {__version__}")
        raise typer.Exit()


@app.callback()
def main_options(
    verbose: Annotated[int, typer.Option(
        "--verbose", "-v", count=True,
        help="Increase verbosity of output (can be specified multiple times)",
    )] = 0,
    quiet: Annotated[int, typer.Option(
        "--quiet", "-q", count=True,
        help="Decrease verbosity of output (can be specified multiple times)",
    )] = 0,
    version: Annotated[Optional[bool], typer.Option(
        "--version", callback=version_callback, is_eager=True,
        help="Show the version and exit",
    )] = None,
):
    # Convert the -v and -q counts to a log level
    log_level = min(logging.CRITICAL, max(logging.DEBUG,
        logging.INFO + 10*(quiet - verbose)
    ))
    get_logger("slurmtail", level=log_level)


@app.command(no_args_is_help=True)
def run(
    script: Annotated[Path, typer.Argument(help="Path to the Slurm batch script")],
    timeout: TimeoutOption = None,
    file_timeout: FileTimeoutOption = None,
    no_timeout: NoTimeoutOption = False,
    no_file_timeout: NoFileTimeoutOption = False,
    lines: LinesOption = None,
    script_dir: Annotated[bool, typer.Option(
        "--script-dir",
        help="Resolve a relative log path against the script's directory instead of the current one",
    )] = False,
    sbatch_args: Annotated[Optional[List[str]], typer.Option(
        "--sbatch-arg",
        help="Extra argument for sbatch, e.g. --sbatch-arg=--partition=debug (can be repeated)",
    )] = None,
):
    """
    Submits a batch script and follows its output log
    """
    sbatch_args = sbatch_args or []
    try:
        # Make sure the specified script exists and is readable
        if not script.exists():
            raise FileNotFoundError(f"Could not find file: {str(script)}")
        if os.access(script, os.R_OK) is False:
            raise PermissionError(f"Could not access file: {str(script)}")

        timeouts = _timeouts(timeout, file_timeout, no_timeout, no_file_timeout)
        directives = read_script(script, sbatch_args)

        logger.info("Submitting job...")
        job_id = submit_script(script, extra_args=sbatch_args)
        logger.info(f"Job {job_id} was submitted.")

        log_string = format_log_path(directives.output_pattern, job_id,
                                     job_name=directives.job_name, user=_current_user())
        log_path = resolve_log_path(script, log_string, use_cwd=not script_dir)
        logger.debug(f"Will use {log_path} as the log file path.")

        save_handle(JobHandle(job_id, log_path), Path.cwd())
    except (SlurmtailError, OSError, ValueError) as e:
        _fail(e)

    logger.info(f"Following log file {log_path}")
    _follow(log_path, timeouts, lines)


@app.command()
def resume(
    timeout: TimeoutOption = None,
    file_timeout: FileTimeoutOption = None,
    no_timeout: NoTimeoutOption = False,
    no_file_timeout: NoFileTimeoutOption = False,
    lines: LinesOption = None,
):
    """
    Resumes following the log of the job last submitted from this directory
    """
    try:
        timeouts = _timeouts(timeout, file_timeout, no_timeout, no_file_timeout)
        handle = load_handle(Path.cwd())
    except (SlurmtailError, ValueError) as e:
        _fail(e)

    job = f"job {handle.job_id}" if handle.job_id is not None else "the last job"
    logger.info(f"Resuming {job}, following log file {handle.output_path}")
    _follow(handle.output_path, timeouts, lines)


@app.command()
def clean():
    """
    Removes the resume file from this directory
    """
    try:
        path = clean_handle(Path.cwd())
    except OSError as e:
        _fail(e)

    if path is None:
        logger.info("No resume file found to clean.")
    else:
        logger.info(f"Removed resume file {path}")


# Short aliases
app.command("r", hidden=True)(resume)
app.command("c", hidden=True)(clean)


def main():
    """
    The main entry point of the slurmtail tool.
    """
    app(prog_name="slurmtail")
