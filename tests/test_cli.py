import json
import logging

import pytest

from typer.testing import CliRunner

from slurmtail import __version__, RESUME_FILE_NAME
from slurmtail.cli import app
from slurmtail.state import JobHandle, save_handle

runner = CliRunner()


@pytest.fixture(autouse=True)
def fast_polling(monkeypatch):
    monkeypatch.setenv("SLURMTAIL_POLL_INTERVAL", "0.01")


@pytest.fixture(scope="function")
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(scope="function")
def sbatch_writing_log(make_sbatch, monkeypatch):
    """A fake sbatch that "runs" job 77 at once, writing its log file"""
    sbatch = make_sbatch(
        """
        echo "hello from job 77" > out.77.log
        echo "Submitted batch job 77"
        """
    )
    monkeypatch.setenv("SLURMTAIL_SBATCH", str(sbatch))
    return sbatch


def test_run_submits_saves_and_follows(workdir, write_script, sbatch_writing_log):
    script = write_script("#!/bin/bash\n#SBATCH --output=out.%j.log\necho hi\n")

    result = runner.invoke(app, ["run", str(script), "--timeout", "0.2"])

    assert result.exit_code == 0, result.output
    assert "hello from job 77" in result.stdout

    resume = json.loads((workdir / RESUME_FILE_NAME).read_text())
    assert resume == {"job_id": 77, "output_path": str(workdir / "out.77.log")}


def test_run_substitutes_job_name(workdir, write_script, make_sbatch, monkeypatch):
    sbatch = make_sbatch(
        """
        echo "named" > out.test_job_name.5.log
        echo "Submitted batch job 5"
        """
    )
    monkeypatch.setenv("SLURMTAIL_SBATCH", str(sbatch))
    script = write_script(
        "#!/bin/bash\n#SBATCH --job-name=test_job_name\n#SBATCH -o out.%x.%j.log\n"
    )

    result = runner.invoke(app, ["run", str(script), "-t", "0.2"])

    assert result.exit_code == 0, result.output
    assert "named" in result.stdout
    resume = json.loads((workdir / RESUME_FILE_NAME).read_text())
    assert resume["output_path"].endswith("out.test_job_name.5.log")


def test_run_without_output_directive_fails(workdir, write_script, sbatch_writing_log, caplog):
    script = write_script("#!/bin/bash\n#SBATCH --job-name=nothing\necho hi\n")

    result = runner.invoke(app, ["run", str(script)])

    assert result.exit_code == 1
    assert "--output directive" in caplog.text
    assert not (workdir / RESUME_FILE_NAME).exists()
    # nothing was submitted
    assert not (workdir / "out.77.log").exists()


def test_run_missing_script_fails(workdir, caplog):
    result = runner.invoke(app, ["run", "does_not_exist.sh"])

    assert result.exit_code == 1
    assert "Could not find file" in caplog.text


def test_run_failed_submission(workdir, write_script, make_sbatch, monkeypatch, caplog):
    sbatch = make_sbatch(
        """
        echo "sbatch: error: invalid partition" >&2
        exit 1
        """
    )
    monkeypatch.setenv("SLURMTAIL_SBATCH", str(sbatch))
    script = write_script("#!/bin/bash\n#SBATCH -o out.%j.log\n")

    result = runner.invoke(app, ["run", str(script)])

    assert result.exit_code == 1
    assert "invalid partition" in caplog.text
    assert not (workdir / RESUME_FILE_NAME).exists()


def test_run_times_out_waiting_for_log(workdir, write_script, make_sbatch, monkeypatch, caplog):
    sbatch = make_sbatch('echo "Submitted batch job 8"\n')
    monkeypatch.setenv("SLURMTAIL_SBATCH", str(sbatch))
    script = write_script("#!/bin/bash\n#SBATCH -o out.%j.log\n")

    result = runner.invoke(app, ["run", str(script), "--file-timeout", "0.05"])

    assert result.exit_code == 1
    assert "did not appear" in caplog.text
    # the job was submitted, so it can still be resumed later
    assert (workdir / RESUME_FILE_NAME).exists()


def test_run_passes_sbatch_args(workdir, write_script, make_sbatch, monkeypatch):
    sbatch = make_sbatch(
        """
        echo "$@" > args.txt
        echo "override" > cli.3.log
        echo "Submitted batch job 3"
        """
    )
    monkeypatch.setenv("SLURMTAIL_SBATCH", str(sbatch))
    script = write_script("#!/bin/bash\n#SBATCH -o script.%j.log\n")

    result = runner.invoke(
        app, ["run", str(script), "-t", "0.2", "--sbatch-arg=--output=cli.%j.log"]
    )

    assert result.exit_code == 0, result.output
    assert "override" in result.stdout
    assert (workdir / "args.txt").read_text().split() == ["--output=cli.%j.log", str(script)]


@pytest.mark.parametrize("command", ["resume", "r"])
def test_resume_follows_saved_log(workdir, command):
    log = workdir / "out.12.log"
    log.write_text("line one\nline two\n")
    save_handle(JobHandle(12, log), workdir)

    result = runner.invoke(app, [command, "--timeout", "0.1"])

    assert result.exit_code == 0, result.output
    assert result.stdout == "line one\nline two\n"


def test_resume_respects_lines(workdir):
    log = workdir / "out.12.log"
    log.write_text("line one\nline two\nline three\n")
    save_handle(JobHandle(12, log), workdir)

    result = runner.invoke(app, ["resume", "-t", "0.1", "--lines", "1"])

    assert result.exit_code == 0, result.output
    assert result.stdout == "line three\n"


def test_resume_without_resume_file_fails(workdir, caplog):
    result = runner.invoke(app, ["resume"])

    assert result.exit_code == 1
    assert "No resume file" in caplog.text


def test_resume_with_malformed_resume_file_fails(workdir, caplog):
    (workdir / RESUME_FILE_NAME).write_text("{not json")

    result = runner.invoke(app, ["resume"])

    assert result.exit_code == 1
    assert "not valid JSON" in caplog.text


def test_zero_timeout_is_rejected(workdir):
    save_handle(JobHandle(12, workdir / "out.12.log"), workdir)

    result = runner.invoke(app, ["resume", "--timeout", "0"])

    assert result.exit_code == 1


@pytest.mark.parametrize("command", ["clean", "c"])
def test_clean_then_resume_fails(workdir, command, caplog):
    save_handle(JobHandle(12, workdir / "out.12.log"), workdir)

    result = runner.invoke(app, [command])

    assert result.exit_code == 0
    assert not (workdir / RESUME_FILE_NAME).exists()
    assert "Removed resume file" in caplog.text

    result = runner.invoke(app, ["resume"])
    assert result.exit_code == 1


def test_clean_without_resume_file(workdir, caplog):
    result = runner.invoke(app, ["clean"])

    assert result.exit_code == 0
    assert "No resume file found" in caplog.text


def test_verbose_enables_debug_logging(workdir, caplog):
    with caplog.at_level(logging.DEBUG):
        result = runner.invoke(app, ["-v", "run", "missing.sh"])

    assert result.exit_code == 1
    assert logging.getLogger("slurmtail").level == logging.DEBUG
    assert "Caught exception" in caplog.text


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


class RecordingFollower:
    """Takes the place of LogFollower, remembering what it was asked to follow"""

    created = []

    def __init__(self, path, timeouts=None, tail_lines=None):
        self.path = path
        self.timeouts = timeouts
        self.tail_lines = tail_lines
        RecordingFollower.created.append(self)

    def follow_to(self, stream):
        pass


@pytest.fixture(scope="function")
def followers(monkeypatch):
    RecordingFollower.created = []
    monkeypatch.setattr("slurmtail.cli.LogFollower", RecordingFollower)
    return RecordingFollower.created


@pytest.mark.parametrize(
    "args, env, expected",
    [
        ([], {}, (120, 120)),
        (["--no-file-timeout"], {}, (None, 120)),
        (["-n"], {}, (None, 120)),
        (["--no-timeout"], {}, (120, None)),
        (["-N", "-n"], {}, (None, None)),
        (["-t", "30", "-f", "45"], {}, (45, 30)),
        ([], {"SLURMTAIL_FILE_TIMEOUT": "300", "SLURMTAIL_TIMEOUT": "60"}, (300, 60)),
        (["--file-timeout", "5"], {"SLURMTAIL_FILE_TIMEOUT": "300"}, (5, 120)),
        (["-n", "--file-timeout", "5"], {"SLURMTAIL_FILE_TIMEOUT": "300"}, (None, 120)),
        (["-N"], {"SLURMTAIL_TIMEOUT": "60"}, (120, None)),
    ],
)
def test_resume_timeouts(workdir, followers, monkeypatch, args, env, expected):
    for name, value in env.items():
        monkeypatch.setenv(name, value)
    save_handle(JobHandle(12, workdir / "out.12.log"), workdir)

    result = runner.invoke(app, ["resume", *args])

    assert result.exit_code == 0, result.output
    assert len(followers) == 1
    assert followers[0].timeouts == expected
    assert followers[0].path == workdir / "out.12.log"


def test_run_timeouts_reach_follower(workdir, write_script, sbatch_writing_log, followers):
    script = write_script("#!/bin/bash\n#SBATCH --output=out.%j.log\n")

    result = runner.invoke(app, ["run", str(script), "-N", "-f", "10", "-l", "5"])

    assert result.exit_code == 0, result.output
    assert followers[0].timeouts == (10, None)
    assert followers[0].tail_lines == 5


def test_invalid_timeout_from_environment_fails(workdir, followers, monkeypatch, caplog):
    monkeypatch.setenv("SLURMTAIL_TIMEOUT", "0")
    save_handle(JobHandle(12, workdir / "out.12.log"), workdir)

    result = runner.invoke(app, ["resume"])

    assert result.exit_code == 1
    assert "SLURMTAIL_TIMEOUT" in caplog.text
    assert followers == []


def test_run_with_script_dir(workdir, make_sbatch, monkeypatch, followers):
    jobs = workdir / "jobs"
    jobs.mkdir()
    script = jobs / "job.sh"
    script.write_text("#!/bin/bash\n#SBATCH --output=logs/out.%j.log\n")
    sbatch = make_sbatch('echo "Submitted batch job 31"\n')
    monkeypatch.setenv("SLURMTAIL_SBATCH", str(sbatch))

    result = runner.invoke(app, ["run", str(script), "--script-dir"])

    assert result.exit_code == 0, result.output
    expected = jobs.resolve() / "logs" / "out.31.log"
    assert followers[0].path == expected
    resume = json.loads((workdir / RESUME_FILE_NAME).read_text())
    assert resume["output_path"] == str(expected)


def test_quiet_log_reports_sub_second_timeout(workdir, caplog):
    log = workdir / "out.12.log"
    log.write_text("done\n")
    save_handle(JobHandle(12, log), workdir)

    result = runner.invoke(app, ["resume", "-t", "0.2"])

    assert result.exit_code == 0, result.output
    assert "No new output in 0.2 seconds" in caplog.text
