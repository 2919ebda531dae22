"""
Reads #SBATCH directives out of a batch script and turns the
output directive into the path of the job's log file.
"""

import re
import shlex
import logging

from collections import namedtuple
from pathlib import Path

from slurmtail.errors import DirectiveNotFoundError

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = "#SBATCH"

OUTPUT_OPTIONS = ("--output", "-o")
JOB_NAME_OPTIONS = ("--job-name", "-J")

# %% is a literal percent sign, %j %x %u may carry a zero-padding width (%5j)
PLACEHOLDER_RE = re.compile(r"%(?:(%)|(\d*)([jxu]))")

ScriptDirectives = namedtuple("ScriptDirectives", ["output_pattern", "job_name"])


def _directive_tokens(text):
    """
    Yields the tokenized arguments of each #SBATCH line.
    Like sbatch, stops at the first line that is not blank or a comment.
    """
    for line in text.splitlines():
        line = line.strip()
        if line == "":
            continue
        if not line.startswith("#"):
            break
        if not line.startswith(DIRECTIVE_PREFIX):
            continue
        rest = line[len(DIRECTIVE_PREFIX):]
        if rest and not rest[0].isspace():
            # e.g. "#SBATCHX", not a directive
            continue
        try:
            tokens = shlex.split(rest, comments=True)
        except ValueError:
            # unbalanced quotes
            tokens = rest.split()
        if tokens:
            yield tokens


def _find_in_tokens(tokens, long_opt, short_opt):
    """Returns the value of the first long_opt/short_opt in a list of
    command line style tokens, or None"""
    for i, token in enumerate(tokens):
        if token in (long_opt, short_opt):
            if i + 1 < len(tokens):
                return tokens[i + 1].strip("'\"")
            continue
        if token.startswith(long_opt + "="):
            value = token[len(long_opt) + 1:]
        elif token.startswith(short_opt) and not token.startswith("--"):
            value = token[len(short_opt):]
            if value[:1].isspace():
                # quoted text such as --comment "-o is nice", not an option
                continue
            value = value.lstrip("=")
        else:
            continue
        if value:
            return value.strip("'\"")
    return None


def _find_option(text, long_opt, short_opt):
    for tokens in _directive_tokens(text):
        value = _find_in_tokens(tokens, long_opt, short_opt)
        if value is not None:
            return value
    return None


def extract_output_pattern(text, source=None):
    """Returns the path template given to --output/-o in the script text"""
    pattern = _find_option(text, *OUTPUT_OPTIONS)
    if pattern is None:
        where = f" in {source}" if source else ""
        raise DirectiveNotFoundError(
            f"No {DIRECTIVE_PREFIX} --output directive found{where}. "
            "slurmtail needs one to know which log file to follow."
        )
    return pattern


def extract_job_name(text):
    return _find_option(text, *JOB_NAME_OPTIONS)


def format_log_path(pattern, job_id, job_name=None, user=None):
    """
    Substitutes the Slurm filename placeholders that slurmtail knows about:

    %j  job id (zero padded when a width is given, e.g. %5j)
    %x  job name
    %u  user name
    %%  a literal %

    Placeholders without a value and any other Slurm placeholder
    are left as they are.
    """
    values = {
        "j": None if job_id is None else str(job_id),
        "x": job_name,
        "u": user,
    }

    def substitute(match):
        if match.group(1) is not None:
            return "%"
        width, key = match.group(2), match.group(3)
        value = values[key]
        if value is None:
            return match.group(0)
        if key == "j" and width:
            value = value.zfill(int(width))
        return value

    return PLACEHOLDER_RE.sub(substitute, pattern)


def resolve_log_path(script_path, log_string, use_cwd=True):
    """
    Turns a formatted log path into an absolute path. Relative paths are
    taken relative to the current directory (where sbatch writes them)
    or, if use_cwd is False, relative to the directory of the script.
    """
    log_path = Path(log_string).expanduser()
    if log_path.is_absolute():
        if use_cwd:
            logger.debug(
                f"Log file {log_path} is an absolute path, "
                "ignoring the current directory."
            )
        return log_path

    if use_cwd:
        base_dir = Path.cwd()
    else:
        base_dir = Path(script_path).resolve().parent
    return base_dir / log_path


def read_script(script_path, extra_args=()):
    """
    Reads the output pattern and job name from a batch script.

    Options among extra_args (the additional arguments given to sbatch)
    take precedence over the script's directives, as they do for sbatch.
    Without a job name the script's file name is used, which is what
    Slurm substitutes for %x.
    """
    script_path = Path(script_path)
    text = script_path.read_text(errors="replace")
    extra_args = list(extra_args)

    output_pattern = _find_in_tokens(extra_args, *OUTPUT_OPTIONS)
    if output_pattern is None:
        output_pattern = extract_output_pattern(text, source=str(script_path))

    job_name = _find_in_tokens(extra_args, *JOB_NAME_OPTIONS)
    if job_name is None:
        job_name = extract_job_name(text)
    if job_name is None:
        job_name = script_path.name
    return ScriptDirectives(output_pattern, job_name)
