"""Version-control clients used to fetch manifests and converge projects."""

from wsctl.vcs.base import VCS, VCSError
from wsctl.vcs.git import GitClient

__all__ = ["VCS", "GitClient", "VCSError"]
