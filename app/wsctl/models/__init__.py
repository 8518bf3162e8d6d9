"""Data models for wsctl."""

from wsctl.models.history import HistoryEntry
from wsctl.models.manifest import FileImport, Host, Manifest, Project, RemoteImport, Tool

__all__ = ["FileImport", "HistoryEntry", "Host", "Manifest", "Project", "RemoteImport", "Tool"]
