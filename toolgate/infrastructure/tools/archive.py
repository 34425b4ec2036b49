"""Zip archive tools."""

import asyncio
import logging
import zipfile
from functools import partial
from pathlib import Path
from typing import Any

from toolgate.domain.tool import ToolDescriptor
from toolgate.infrastructure.sandbox import SandboxPathResolver

logger = logging.getLogger(__name__)


def _write_archive(entries: list[tuple[Path, str]], output: Path) -> int:
    count = 0
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for source, arcname in entries:
            if source.is_dir():
                for child in sorted(source.rglob("*")):
                    if child.is_file():
                        archive.write(child, f"{arcname}/{child.relative_to(source).as_posix()}")
                        count += 1
            else:
                archive.write(source, arcname)
                count += 1
    return count


def _extract_archive(archive_path: Path, output_dir: Path, resolver: SandboxPathResolver) -> int:
    output_dir.mkdir(parents=True, exist_ok=True)
    relative_output = resolver.relative(output_dir)

    with zipfile.ZipFile(archive_path) as archive:
        members = archive.infolist()
        # Resolve every member before extracting anything (zip-slip guard)
        targets = [
            (member, resolver.resolve(f"{relative_output}/{member.filename}"))
            for member in members
        ]
        for member, target in targets:
            if member.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with archive.open(member) as src, open(target, "wb") as dst:
                while chunk := src.read(64 * 1024):
                    dst.write(chunk)
    return len(members)


async def zip_files(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    entries = []
    for name in params["files"]:
        source = resolver.resolve(str(name))
        if not source.exists():
            raise FileNotFoundError(f"No such file or directory: {name}")
        entries.append((source, source.name))

    output = resolver.resolve(params["output"])
    output.parent.mkdir(parents=True, exist_ok=True)

    count = await asyncio.to_thread(_write_archive, entries, output)
    logger.info(f"Created archive {output} with {count} files")
    return f"Archive created: {resolver.relative(output)} ({count} files)"


async def unzip_file(params: dict[str, Any], resolver: SandboxPathResolver) -> str:
    archive_path = resolver.resolve(params["archive"])
    output_dir = resolver.resolve(params["outputDir"])

    count = await asyncio.to_thread(_extract_archive, archive_path, output_dir, resolver)
    return f"Archive extracted to: {resolver.relative(output_dir)} ({count} entries)"


def create_zip_files_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="zipFiles",
        description="Compress multiple sandboxed files into a .zip archive",
        parameter_schema={
            "type": "object",
            "properties": {
                "files": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Files or directories to include",
                },
                "output": {"type": "string", "description": "Archive path to create"},
            },
            "required": ["files", "output"],
        },
        executor=partial(zip_files, resolver=resolver),
    )


def create_unzip_file_tool(resolver: SandboxPathResolver) -> ToolDescriptor:
    return ToolDescriptor(
        name="unzipFile",
        description="Extract a .zip archive into the sandbox",
        parameter_schema={
            "type": "object",
            "properties": {
                "archive": {"type": "string", "description": "Archive path"},
                "outputDir": {"type": "string", "description": "Directory to extract into"},
            },
            "required": ["archive", "outputDir"],
        },
        executor=partial(unzip_file, resolver=resolver),
    )


def create_archive_tools(resolver: SandboxPathResolver) -> list[ToolDescriptor]:
    return [create_zip_files_tool(resolver), create_unzip_file_tool(resolver)]
