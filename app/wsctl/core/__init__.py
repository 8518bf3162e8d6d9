"""Core workspace engine: manifests, import resolution, sync and history."""
