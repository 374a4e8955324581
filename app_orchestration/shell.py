"""
App Orchestration - Shell Adapter

Runs shell commands for steps and collaborators.
Non-zero exits are raised as ShellError with the command's output attached.
"""

from __future__ import annotations
from typing import Dict, Optional
import logging
import os
import subprocess

from app_orchestration.errors import ShellError

logger = logging.getLogger(__name__)

# Characters of command output kept on failure
OUTPUT_TAIL = 4000


class ShellAdapter:
    """Executes commands through the system shell."""

    def __init__(self, inherit_environment: bool = True):
        """
        Initialize shell adapter.

        Args:
            inherit_environment: Start every command from a copy of os.environ
        """
        self.inherit_environment = inherit_environment
        self.logger = logging.getLogger(__name__)

    def run_shell_command(
        self,
        command: str,
        cwd: Optional[str] = None,
        environment: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Run a command and return its trimmed output.

        Args:
            command: Shell command line
            cwd: Working directory
            environment: Variables added to the command's environment
            timeout: Seconds before the command is killed

        Returns:
            Combined stdout of the command, stripped

        Raises:
            ShellError: If the command exits non-zero or times out
        """
        env = os.environ.copy() if self.inherit_environment else {}
        env.update({k: str(v) for k, v in (environment or {}).items()})

        self.logger.debug(f"Running: {command}" + (f" (cwd: {cwd})" if cwd else ""))

        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                env=env,
                text=True,
                capture_output=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = e.stderr or e.stdout or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            raise ShellError(
                f"Command timed out after {timeout}s: {command}",
                command=command,
                output=output[-OUTPUT_TAIL:],
            )

        if proc.returncode != 0:
            output = (proc.stderr or proc.stdout or "").strip()
            raise ShellError(
                f"Command failed with exit code {proc.returncode}: {command}"
                + (f"\n{output[-OUTPUT_TAIL:]}" if output else ""),
                command=command,
                exit_code=proc.returncode,
                output=output[-OUTPUT_TAIL:],
            )

        return proc.stdout.strip()
