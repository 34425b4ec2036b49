"""Unit tests for SandboxPathResolver."""

import os

import pytest

from toolgate.domain.exceptions import SandboxViolationError
from toolgate.infrastructure.sandbox import SandboxPathResolver


class TestSandboxPathResolver:
    """Tests for sandbox confinement."""

    def test_relative_path_joined_to_root(self, resolver, sandbox_dir):
        assert resolver.resolve("notes/today.txt") == sandbox_dir / "notes" / "today.txt"

    def test_dot_resolves_to_root(self, resolver, sandbox_dir):
        assert resolver.resolve(".") == sandbox_dir

    def test_parent_traversal_rejected(self, resolver):
        with pytest.raises(SandboxViolationError) as exc_info:
            resolver.resolve("../../etc/passwd")

        assert exc_info.value.path == "../../etc/passwd"

    def test_traversal_that_stays_inside_is_allowed(self, resolver, sandbox_dir):
        assert resolver.resolve("a/../b.txt") == sandbox_dir / "b.txt"

    def test_absolute_path_outside_rejected(self, resolver):
        with pytest.raises(SandboxViolationError):
            resolver.resolve("/etc/passwd")

    def test_absolute_path_inside_allowed(self, resolver, sandbox_dir):
        target = str(sandbox_dir / "file.txt")

        assert resolver.resolve(target) == sandbox_dir / "file.txt"

    def test_sibling_with_common_prefix_rejected(self, resolver, sandbox_dir):
        sibling = sandbox_dir.parent / (sandbox_dir.name + "-other")
        sibling.mkdir()

        with pytest.raises(SandboxViolationError):
            resolver.resolve(str(sibling / "x.txt"))

    def test_symlink_escape_rejected(self, resolver, sandbox_dir, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        os.symlink(outside, sandbox_dir / "link")

        with pytest.raises(SandboxViolationError):
            resolver.resolve("link/secret.txt")

    def test_relative_for_display(self, resolver, sandbox_dir):
        assert resolver.relative(sandbox_dir / "a" / "b.txt") == "a/b.txt"
        assert resolver.relative(sandbox_dir) == "."

    def test_ensure_root_creates_directory(self, tmp_path):
        resolver = SandboxPathResolver(tmp_path / "new" / "sandbox")

        root = resolver.ensure_root()

        assert root.is_dir()
        assert root == (tmp_path / "new" / "sandbox").resolve()
