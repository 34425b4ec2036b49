from toolgate.infrastructure.sandbox.path_resolver import SandboxPathResolver

__all__ = ["SandboxPathResolver"]
