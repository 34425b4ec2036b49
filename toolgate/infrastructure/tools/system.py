"""Allowlisted command execution tool.

Commands run without a shell, inside the sandbox, in their own process
group so a timeout can kill the whole tree.
"""

import asyncio
import json
import logging
import os
import signal
from typing import Any

from toolgate.domain.exceptions import ValidationError
from toolgate.domain.tool import ToolDescriptor
from toolgate.infrastructure.sandbox import SandboxPathResolver

logger = logging.getLogger(__name__)

ALLOWED_COMMANDS = frozenset(
    {
        "ls",
        "pwd",
        "whoami",
        "date",
        "echo",
        "cat",
        "head",
        "tail",
        "wc",
        "sort",
        "uniq",
        "grep",
        "find",
        "which",
        "env",
        "ps",
        "df",
        "du",
        "free",
        "uptime",
        "uname",
        "id",
        "groups",
    }
)

# Maximum output kept per stream (1MB)
MAX_OUTPUT_SIZE = 1024 * 1024

# Upper bound for a caller-supplied timeout, in seconds
MAX_TIMEOUT = 600


class CommandTool:
    """Run an allowlisted command in the sandbox."""

    def __init__(self, resolver: SandboxPathResolver, default_timeout: float = 30.0) -> None:
        self._resolver = resolver
        self._default_timeout = default_timeout

    def _timeout_seconds(self, params: dict[str, Any]) -> float:
        timeout_ms = params.get("timeout")
        if timeout_ms is None:
            return self._default_timeout
        return min(max(0.001, timeout_ms / 1000), MAX_TIMEOUT)

    async def execute(self, params: dict[str, Any]) -> str:
        command = params["command"]
        if command not in ALLOWED_COMMANDS:
            raise ValidationError(
                f"Command '{command}' is not allowed for security reasons", field="command"
            )

        args = [str(arg) for arg in params.get("args") or []]
        working_directory = params.get("workingDirectory") or "."
        cwd = self._resolver.resolve(working_directory)
        timeout = self._timeout_seconds(params)

        logger.info(f"Executing: {command} {' '.join(args)[:100]} (timeout={timeout}s, cwd={cwd})")

        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env={**os.environ, "PWD": str(cwd)},
            start_new_session=True,  # Own process group so we can kill all children
        )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except (ProcessLookupError, PermissionError):
                process.kill()
            await process.wait()
            raise TimeoutError(f"Command timed out after {int(timeout * 1000)}ms")

        stdout_text = stdout[:MAX_OUTPUT_SIZE].decode("utf-8", errors="replace").strip()
        stderr_text = stderr[:MAX_OUTPUT_SIZE].decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            raise RuntimeError(
                f"Command failed with exit code {process.returncode}: {stderr_text or stdout_text}"
            )

        return json.dumps(
            {
                "command": command,
                "args": args,
                "workingDirectory": working_directory,
                "exitCode": process.returncode,
                "stdout": stdout_text,
                "stderr": stderr_text,
                "success": True,
            },
            indent=2,
        )

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name="executeCommand",
            description="Execute an allowlisted command inside the sandbox (no shell)",
            parameter_schema={
                "type": "object",
                "properties": {
                    "command": {
                        "type": "string",
                        "description": f"One of: {', '.join(sorted(ALLOWED_COMMANDS))}",
                    },
                    "args": {"type": "array", "items": {"type": "string"}, "default": []},
                    "timeout": {
                        "type": "number",
                        "description": "Timeout in milliseconds",
                        "default": int(self._default_timeout * 1000),
                    },
                    "workingDirectory": {"type": "string", "default": "."},
                },
                "required": ["command"],
            },
            executor=self.execute,
        )
