"""
Local command executor.

Runs one external program per request and captures its output. There is no
shell involved and no timeout: a hung child blocks the caller.
"""

import logging
import signal
import subprocess
from dataclasses import dataclass
from typing import List

logger = logging.getLogger("ranchhand.executor")


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one command execution."""

    output: str
    failed: bool


def split_arguments(argument_string: str) -> List[str]:
    """
    Split an argument string on whitespace.

    Quotes are not interpreted, so "--flag 'a b'" yields three arguments and
    an argument containing spaces cannot be passed as a single token.
    """
    return argument_string.split()


def format_failure(cause: str, stdout: str, stderr: str) -> str:
    """Render a failure the way it is reported back to the control server."""
    return f"Error: {cause}\nStdout: {stdout}\nStderr: {stderr}"


def describe_exit(returncode: int) -> str:
    """Human readable exit status of a finished child."""
    if returncode < 0:
        try:
            name = signal.strsignal(-returncode)
        except ValueError:
            name = None
        return f"signal: {(name or str(-returncode)).lower()}"
    return f"exit status {returncode}"


class CommandExecutor:
    """Executes commands as child processes of the agent."""

    def execute(self, command: str, argument_string: str) -> ExecutionResult:
        """
        Run `command` with arguments parsed from `argument_string`.

        Args:
            command: Executable name or path
            argument_string: Whitespace-delimited arguments

        Returns:
            ExecutionResult with stdout on success, or the formatted
            error, stdout and stderr on failure
        """
        args = split_arguments(argument_string)
        logger.info(f"Executing command: {command} {' '.join(args)}")

        # Undecodable output bytes become U+FFFD. ValueError here only means
        # argv was rejected before exec, e.g. an embedded null byte.
        try:
            process = subprocess.run(
                [command] + args,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except (OSError, ValueError) as e:
            logger.error(f"Failed to launch {command}: {e}")
            return ExecutionResult(output=format_failure(str(e), "", ""), failed=True)

        stdout = process.stdout or ""
        stderr = process.stderr or ""

        if process.returncode != 0:
            cause = describe_exit(process.returncode)
            logger.warning(f"Command {command} failed: {cause}")
            return ExecutionResult(output=format_failure(cause, stdout, stderr), failed=True)

        logger.info("Command executed successfully")
        return ExecutionResult(output=stdout, failed=False)
