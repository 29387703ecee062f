"""
Executor Module - Black Box Interface

Purpose: Run one external command and capture its output
Interface: CommandExecutor.execute(command, argument_string) -> ExecutionResult
Hidden: Argument splitting, process launching, error formatting

Runs with the agent's own privileges; it is not a sandbox.
"""

from .executor import CommandExecutor, ExecutionResult, format_failure, split_arguments

__all__ = ["CommandExecutor", "ExecutionResult", "format_failure", "split_arguments"]
