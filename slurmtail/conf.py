import os
import math
import shlex

DEFAULT_SBATCH = "sbatch"
DEFAULT_TIMEOUT = 120
DEFAULT_FILE_TIMEOUT = 120
DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_TAIL_LINES = 150


def _env_number(name, default, cast=float, allow_zero=False):
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        number = cast(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    if number < 0 or (number == 0 and not allow_zero):
        bound = "must not be negative" if allow_zero else "must be greater than 0"
        raise ValueError(f"{name} {bound}, got {value!r}")
    return number


def sbatch_command():
    """Returns the submission command as an argument list,
    honoring SLURMTAIL_SBATCH"""
    command = shlex.split(os.environ.get("SLURMTAIL_SBATCH", ""))
    return command or [DEFAULT_SBATCH]


def timeout():
    return _env_number("SLURMTAIL_TIMEOUT", DEFAULT_TIMEOUT)


def file_timeout():
    return _env_number("SLURMTAIL_FILE_TIMEOUT", DEFAULT_FILE_TIMEOUT)


def poll_interval():
    return _env_number("SLURMTAIL_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)


def tail_lines():
    return _env_number("SLURMTAIL_TAIL_LINES", DEFAULT_TAIL_LINES, cast=int, allow_zero=True)
