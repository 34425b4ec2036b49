"""Sandbox search tools: grep inside a file and find files by name."""

import asyncio
import json
import logging
import re
from functools import partial
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from toolgate.domain.exceptions import ValidationError
from toolgate.domain.tool import ToolDescriptor
from toolgate.infrastructure.sandbox import SandboxPathResolver

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def _compile(pattern: str, flags: int = 0, field: str = "pattern") -> re.Pattern[str]:
    try:
        return re.compile(pattern, flags)
    except re.error as e:
        raise ValidationError(f"Invalid regular expression: {e}", field=field) from e


# =============================================================================
# GREP
# =============================================================================


async def grep(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    if await aiofiles.os.path.isdir(resolved):
        raise IsADirectoryError("Path must be a file, not a directory")

    flags = 0 if params.get("caseSensitive", False) else re.IGNORECASE
    pattern = params["pattern"]
    if params.get("wholeWord", False):
        pattern = rf"\b{pattern}\b"
    regex = _compile(pattern, flags)

    async with aiofiles.open(resolved, "r", encoding="utf-8", errors="replace") as f:
        content = await f.read()

    matches = []
    for line_number, line in enumerate(content.split("\n"), start=1):
        found = regex.search(line)
        if found:
            matches.append({"line": line_number, "content": line.strip(), "match": found.group(0)})

    return json.dumps(
        {
            "pattern": params["pattern"],
            "file": params["path"],
            "totalMatches": len(matches),
            "matches": matches,
        },
        indent=2,
    )


# =============================================================================
# FIND FILES
# =============================================================================


def _walk(
    directory: Path,
    base: Path,
    regex: re.Pattern[str],
    include_directories: bool,
    max_depth: int,
    depth: int = 0,
) -> list[dict[str, Any]]:
    if depth > max_depth:
        return []

    try:
        children = sorted(directory.iterdir())
    except OSError as e:
        logger.debug(f"Skipping unreadable directory {directory}: {e}")
        return []

    results: list[dict[str, Any]] = []
    for child in children:
        relative = child.relative_to(base).as_posix()
        if child.is_dir() and not child.is_symlink():
            if include_directories and regex.search(child.name):
                results.append({"path": relative, "type": "directory", "size": child.stat().st_size})
            results.extend(_walk(child, base, regex, include_directories, max_depth, depth + 1))
        elif child.is_file() and regex.search(child.name):
            results.append({"path": relative, "type": "file", "size": child.stat().st_size})
    return results


async def find_files(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    directory = params.get("directory") or "."
    resolved = resolver.resolve(directory)
    regex = _compile(params["pattern"], re.IGNORECASE)
    max_depth = int(params.get("maxDepth", DEFAULT_MAX_DEPTH))

    files = await asyncio.to_thread(
        _walk,
        resolved,
        resolved,
        regex,
        bool(params.get("includeDirectories", False)),
        max_depth,
    )

    return json.dumps(
        {
            "pattern": params["pattern"],
            "directory": directory,
            "totalFound": len(files),
            "files": files,
        },
        indent=2,
    )


def create_grep_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="grep",
        description="Search for text patterns in files",
        parameter_schema={
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Regular expression"},
                "path": {"type": "string", "description": "File to search"},
                "caseSensitive": {"type": "boolean", "default": False},
                "wholeWord": {"type": "boolean", "default": False},
            },
            "required": ["pattern", "path"],
        },
        executor=partial(grep, resolver=resolver),
    )


def create_find_files_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="findFiles",
        description="Find files by name pattern in the sandbox",
        parameter_schema={
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Regular expression matched against names"},
                "directory": {"type": "string", "default": "."},
                "includeDirectories": {"type": "boolean", "default": False},
                "maxDepth": {"type": "number", "default": DEFAULT_MAX_DEPTH},
            },
            "required": ["pattern"],
        },
        executor=partial(find_files, resolver=resolver),
    )
