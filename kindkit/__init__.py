"""Error, filesystem, command execution and version helpers for local Kubernetes cluster tooling."""

__version__ = "0.19.0"

__all__ = ["errors", "fs", "execution", "version"]