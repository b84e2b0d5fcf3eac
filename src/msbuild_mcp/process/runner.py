"""Supervised execution of one external command.

The calling thread blocks until the child exits. Standard output and standard
error are drained by one reader thread each and handed to the consumers line
by line while the child runs.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import IO

from ..errors import ProcessInterruptedError, ProcessLaunchError
from .consumers import OutputConsumer

logger = logging.getLogger(__name__)

# Upper bound for draining pipes after the child has been killed
READER_JOIN_TIMEOUT: float = 5.0


def format_command(command: Sequence[str]) -> str:
    """Render a command line for log messages."""
    return " ".join(f'"{part}"' if " " in part else part for part in command)


class ProcessRunner:
    """Runs external commands and relays their output to consumers.

    No retries are made; retry policy belongs to the caller.
    """

    def run(
        self,
        command: str | Path,
        arguments: Sequence[str],
        working_directory: str | Path,
        stdin: str | None = None,
        stdout_consumer: OutputConsumer | None = None,
        stderr_consumer: OutputConsumer | None = None,
        timeout: float | None = None,
    ) -> int:
        """Run a command to completion.

        Args:
            command: Absolute path to the executable
            arguments: Ordered argument list
            working_directory: Existing directory to run in
            stdin: Optional text written to the process's standard input
            stdout_consumer: Receives standard output line by line
            stderr_consumer: Receives standard error line by line
            timeout: Optional limit in seconds; the child is killed when exceeded

        Returns:
            Process exit code

        Raises:
            ProcessLaunchError: If the process cannot be spawned
            ProcessInterruptedError: If the wait is interrupted or times out
        """
        executable = str(command)
        if not os.path.isabs(executable):
            raise ProcessLaunchError(executable, "executable path must be absolute")
        if not os.path.isdir(working_directory):
            raise ProcessLaunchError(
                executable, f"working directory does not exist: {working_directory}"
            )

        cmd = [executable, *arguments]
        logger.debug(f"Running: {format_command(cmd)} (cwd={working_directory})")

        try:
            # Never use shell=True
            process = subprocess.Popen(
                cmd,
                cwd=str(working_directory),
                stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise ProcessLaunchError(executable, str(e)) from e

        readers = [
            self._start_reader(process.stdout, stdout_consumer, "stdout"),
            self._start_reader(process.stderr, stderr_consumer, "stderr"),
        ]

        try:
            if stdin is not None:
                self._feed_stdin(process, stdin)
            exit_code = process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            self._kill(process, readers)
            raise ProcessInterruptedError(executable, f"timed out after {timeout}s") from e
        except KeyboardInterrupt as e:
            self._kill(process, readers)
            raise ProcessInterruptedError(executable, "wait was interrupted") from e

        for reader in readers:
            reader.join()

        logger.debug(f"{os.path.basename(executable)} returned {exit_code}")
        return exit_code

    @staticmethod
    def _start_reader(
        stream: IO[str] | None, consumer: OutputConsumer | None, name: str
    ) -> threading.Thread:
        def pump() -> None:
            if stream is None:
                return
            try:
                for line in iter(stream.readline, ""):
                    if consumer is None:
                        continue
                    try:
                        consumer(line.rstrip("\r\n"))
                    except Exception:
                        logger.exception(f"Output consumer error on {name}")
            finally:
                stream.close()

        reader = threading.Thread(target=pump, name=f"process-{name}", daemon=True)
        reader.start()
        return reader

    @staticmethod
    def _feed_stdin(process: subprocess.Popen, text: str) -> None:
        if process.stdin is None:
            return
        try:
            process.stdin.write(text)
        except BrokenPipeError:
            # Child exited without reading all of its input
            logger.debug("Process closed stdin before all input was written")
        finally:
            try:
                process.stdin.close()
            except BrokenPipeError:
                pass

    @staticmethod
    def _kill(process: subprocess.Popen, readers: list[threading.Thread]) -> None:
        process.kill()
        process.wait()
        for reader in readers:
            reader.join(timeout=READER_JOIN_TIMEOUT)
