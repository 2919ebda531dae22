import os
import stat
import textwrap

import pytest


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith("SLURMTAIL_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope="function")
def write_script(tmp_path):
    """Writes a batch script into tmp_path and returns its path"""
    def write(text, name="job.sh"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(text).lstrip())
        return path

    return write


# Write out a shell script that mocks the sbatch cli
@pytest.fixture(scope="function")
def make_sbatch(tmp_path):
    def make(body):
        path = tmp_path / "fake_sbatch.sh"
        path.write_text("#!/bin/sh\n" + textwrap.dedent(body).lstrip())
        os.chmod(path, stat.S_IRWXU)
        return path

    return make


class FakeClock:
    """
    Stands in for time.monotonic and time.sleep. Sleeping advances the
    clock instantly and then calls on_sleep, which tests use to change
    the log file between polls.
    """

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self.on_sleep = None

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
        if self.on_sleep is not None:
            self.on_sleep(self)


@pytest.fixture(scope="function")
def clock():
    return FakeClock()
