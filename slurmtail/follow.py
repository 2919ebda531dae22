"""
Following a job's log file: wait for Slurm to create it, show the last
lines, then stream whatever is appended until the job goes quiet.
"""

import os
import time
import codecs
import logging

from collections import namedtuple
from pathlib import Path

from slurmtail import conf
from slurmtail.errors import LogFileTimeoutError
from slurmtail.utils import describe_timeout, readable_time, s

logger = logging.getLogger(__name__)

# Size of the blocks read when scanning backwards for the last lines
# and when reading new output
BLOCK_SIZE = 8192

# Number of bytes before the read position that are compared against
# what was read, to notice a log rewritten in place
FINGERPRINT_SIZE = 64


class Timeouts(namedtuple("Timeouts", ["file_timeout", "inactivity_timeout"])):
    """
    Bounds, in seconds, on how long to wait for the log file to appear
    (file_timeout) and for new output once it exists (inactivity_timeout).
    None means wait forever.
    """

    __slots__ = ()

    def __new__(cls, file_timeout=conf.DEFAULT_FILE_TIMEOUT, inactivity_timeout=conf.DEFAULT_TIMEOUT):
        for name, value in (("file_timeout", file_timeout), ("inactivity_timeout", inactivity_timeout)):
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be a positive number of seconds or None, got {value!r}")
        return super().__new__(cls, file_timeout, inactivity_timeout)


def tail_offset(f, lines):
    """
    Returns the byte offset at which the last `lines` lines of the binary
    file object f start. A newline ending the file terminates the last line
    rather than starting an empty one.
    """
    size = os.fstat(f.fileno()).st_size
    if lines <= 0:
        return size
    if size == 0:
        return 0

    end = size
    f.seek(size - 1)
    if f.read(1) == b"\n":
        end -= 1

    found = 0
    position = end
    while position > 0:
        chunk_size = min(BLOCK_SIZE, position)
        position -= chunk_size
        f.seek(position)
        chunk = f.read(chunk_size)
        index = len(chunk)
        while True:
            index = chunk.rfind(b"\n", 0, index)
            if index < 0:
                break
            found += 1
            if found == lines:
                return position + index + 1
    return 0


class LogFollower:
    """
    Follows a single log file that may not exist yet.

    The clock and sleep callables default to time.monotonic and time.sleep,
    tests pass fakes to drive the timeouts.
    """

    def __init__(self, path, timeouts=None, poll_interval=None, tail_lines=None,
                 clock=time.monotonic, sleep=time.sleep):
        self.path = Path(path)
        self.timeouts = timeouts if timeouts is not None else Timeouts()
        self.poll_interval = conf.poll_interval() if poll_interval is None else poll_interval
        self.tail_lines = conf.tail_lines() if tail_lines is None else tail_lines
        self.clock = clock
        self.sleep = sleep

    def wait_for_file(self):
        """
        Polls until the log file can be opened and returns it, opened in
        binary mode. Raises LogFileTimeoutError if the file timeout passes first.
        """
        timeout = self.timeouts.file_timeout
        start = self.clock()
        announced = False
        while True:
            try:
                f = self.path.open("rb")
            except FileNotFoundError:
                pass
            else:
                if announced:
                    logger.info(f"Found log file {self.path}")
                return f

            if not announced:
                logger.info(f"Waiting for log file to be created: {self.path} ({describe_timeout(timeout)})")
                announced = True

            elapsed = self.clock() - start
            if timeout is not None and elapsed >= timeout:
                raise LogFileTimeoutError(self.path, timeout)

            delay = self.poll_interval
            if timeout is not None:
                delay = min(delay, timeout - elapsed)
            logger.debug(f"{self.path} does not exist yet, retrying in {delay:g} seconds")
            self.sleep(delay)

    def _check_rotation(self, f, fingerprint=b""):
        """
        Returns the file object to keep reading from and whether it changed.
        A replaced file is reopened from the start, a truncated one rewound.

        fingerprint holds the last bytes read before the current position.
        If the file no longer holds them there, it was truncated and written
        again between two polls, so it is rewound as well.
        """
        try:
            st = os.stat(self.path)
        except FileNotFoundError:
            # Moved away and not recreated yet, keep draining the old file
            return f, False

        fst = os.fstat(f.fileno())
        if (st.st_dev, st.st_ino) != (fst.st_dev, fst.st_ino):
            try:
                new_f = self.path.open("rb")
            except FileNotFoundError:
                return f, False
            logger.info(f"Log file {self.path} was replaced, following the new file")
            f.close()
            return new_f, True

        position = f.tell()
        rewritten = False
        if fingerprint and st.st_size >= position:
            start = position - len(fingerprint)
            rewritten = os.pread(f.fileno(), len(fingerprint), start) != fingerprint
        if st.st_size < position or rewritten:
            logger.info(f"Log file {self.path} was truncated, reading from the start")
            f.seek(0)
            return f, True

        return f, False

    def follow(self):
        """
        Generator over the text of the log file: first its last lines,
        then everything appended to it. Returns once no new bytes have
        been read for the inactivity timeout, if there is one.
        """
        inactivity_timeout = self.timeouts.inactivity_timeout
        f = self.wait_for_file()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            offset = tail_offset(f, self.tail_lines)
            f.seek(offset)
            logger.debug(f"Showing up to the last {self.tail_lines} line{s(self.tail_lines)} of {self.path}")

            # Bytes just before the read position, used to detect rewrites
            start = max(0, offset - FINGERPRINT_SIZE)
            fingerprint = os.pread(f.fileno(), offset - start, start)

            last_read = self.clock()
            while True:
                data = f.read(BLOCK_SIZE)
                if data:
                    last_read = self.clock()
                    fingerprint = (fingerprint + data)[-FINGERPRINT_SIZE:]
                    text = decoder.decode(data)
                    if text:
                        yield text
                    continue

                if inactivity_timeout is not None and self.clock() - last_read >= inactivity_timeout:
                    leftover = decoder.decode(b"", final=True)
                    if leftover:
                        yield leftover
                    logger.warning(
                        f"No new output in {readable_time(inactivity_timeout)}, "
                        f"stopped following {self.path}"
                    )
                    return

                self.sleep(self.poll_interval)

                # Checked before the next read, which would otherwise
                # pick up a rewritten file in the middle
                f, changed = self._check_rotation(f, fingerprint)
                if changed:
                    fingerprint = b""
                    leftover = decoder.decode(b"", final=True)
                    if leftover:
                        yield leftover
                    decoder.reset()
        finally:
            f.close()

    def follow_to(self, stream):
        """Writes the followed log to a text stream as it arrives"""
        for text in self.follow():
            stream.write(text)
            stream.flush()
