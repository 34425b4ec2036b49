"""Filesystem tools.

Every path argument is resolved through the sandbox resolver before any
filesystem call, so a path outside the sandbox fails with
SandboxViolationError and nothing is touched.
"""

import asyncio
import json
import logging
import shutil
import stat
from datetime import UTC, datetime
from functools import partial
from typing import Any

import aiofiles
import aiofiles.os

from toolgate.domain.tool import ToolDescriptor
from toolgate.infrastructure.sandbox import SandboxPathResolver

logger = logging.getLogger(__name__)


def _path_schema(description: str) -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"path": {"type": "string", "description": description}},
        "required": ["path"],
    }


def _source_destination_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "source": {"type": "string", "description": "Existing path in the sandbox"},
            "destination": {"type": "string", "description": "Target path in the sandbox"},
        },
        "required": ["source", "destination"],
    }


def _isoformat(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()


# =============================================================================
# READ / WRITE / DELETE
# =============================================================================


async def read_file(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    async with aiofiles.open(resolved, "r", encoding="utf-8", errors="replace") as f:
        return await f.read()


async def write_file(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    await aiofiles.os.makedirs(resolved.parent, exist_ok=True)

    async with aiofiles.open(resolved, "w", encoding="utf-8") as f:
        await f.write(params["content"])

    return f"File written successfully: {resolver.relative(resolved)}"


async def delete_file(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    await aiofiles.os.remove(resolved)
    return f"File deleted: {resolver.relative(resolved)}"


# =============================================================================
# DIRECTORIES
# =============================================================================


async def list_files(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    names = sorted(await aiofiles.os.listdir(resolved))

    entries = []
    for name in names:
        is_dir = await aiofiles.os.path.isdir(resolved / name)
        entries.append({"name": name, "type": "directory" if is_dir else "file"})

    return json.dumps(entries, indent=2)


async def create_directory(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    if params.get("recursive", False):
        await aiofiles.os.makedirs(resolved, exist_ok=True)
    else:
        await aiofiles.os.mkdir(resolved)
    return f"Directory created: {params['path']}"


# =============================================================================
# COPY / MOVE
# =============================================================================


async def copy_file(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    source = resolver.resolve(params["source"])
    destination = resolver.resolve(params["destination"])

    if await aiofiles.os.path.isdir(source):
        await asyncio.to_thread(shutil.copytree, source, destination, dirs_exist_ok=True)
    else:
        await asyncio.to_thread(shutil.copy2, source, destination)

    return f"Copied {params['source']} to {params['destination']}"


async def move_file(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    source = resolver.resolve(params["source"])
    destination = resolver.resolve(params["destination"])
    await aiofiles.os.rename(source, destination)
    return f"Moved {params['source']} to {params['destination']}"


# =============================================================================
# METADATA
# =============================================================================


async def get_file_info(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    resolved = resolver.resolve(params["path"])
    info = await aiofiles.os.stat(resolved)
    is_symlink = await aiofiles.os.path.islink(resolved)
    is_dir = stat.S_ISDIR(info.st_mode)

    return json.dumps(
        {
            "path": params["path"],
            "type": "directory" if is_dir else "file",
            "size": info.st_size,
            "isFile": stat.S_ISREG(info.st_mode),
            "isDirectory": is_dir,
            "isSymbolicLink": is_symlink,
            "mode": info.st_mode,
            "permissions": stat.filemode(info.st_mode),
            "uid": info.st_uid,
            "gid": info.st_gid,
            "atime": _isoformat(info.st_atime),
            "mtime": _isoformat(info.st_mtime),
            "ctime": _isoformat(info.st_ctime),
        },
        indent=2,
    )


# =============================================================================
# FACTORIES
# =============================================================================


def create_read_file_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="readFile",
        description="Read text content from a sandboxed file path",
        parameter_schema=_path_schema("File path relative to the sandbox"),
        executor=partial(read_file, resolver=resolver),
    )


def create_write_file_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="writeFile",
        description="Write text content to a sandboxed file path",
        parameter_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path relative to the sandbox"},
                "content": {"type": "string", "description": "Text to write"},
            },
            "required": ["path", "content"],
        },
        executor=partial(write_file, resolver=resolver),
    )


def create_delete_file_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="deleteFile",
        description="Delete a sandboxed file",
        parameter_schema=_path_schema("File path relative to the sandbox"),
        executor=partial(delete_file, resolver=resolver),
    )


def create_list_files_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="listFiles",
        description="List files in a sandboxed directory",
        parameter_schema=_path_schema("Directory path relative to the sandbox"),
        executor=partial(list_files, resolver=resolver),
    )


def create_create_directory_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="createDirectory",
        description="Create a directory in the sandbox",
        parameter_schema={
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory to create"},
                "recursive": {
                    "type": "boolean",
                    "description": "Create missing parent directories",
                    "default": False,
                },
            },
            "required": ["path"],
        },
        executor=partial(create_directory, resolver=resolver),
    )


def create_copy_file_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="copyFile",
        description="Copy a file or directory in the sandbox",
        parameter_schema=_source_destination_schema(),
        executor=partial(copy_file, resolver=resolver),
    )


def create_move_file_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="moveFile",
        description="Move or rename a file/directory in the sandbox",
        parameter_schema=_source_destination_schema(),
        executor=partial(move_file, resolver=resolver),
    )


def create_get_file_info_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="getFileInfo",
        description="Get file or directory information (size, modified date, permissions)",
        parameter_schema=_path_schema("Path relative to the sandbox"),
        executor=partial(get_file_info, resolver=resolver),
    )


def create_filesystem_tools(resolver: SandboxPathResolver) -> list[ToolDescriptor]:
    return [
        create_read_file_tool(resolver),
        create_write_file_tool(resolver),
        create_delete_file_tool(resolver),
        create_list_files_tool(resolver),
        create_create_directory_tool(resolver),
        create_copy_file_tool(resolver),
        create_move_file_tool(resolver),
        create_get_file_info_tool(resolver),
    ]
