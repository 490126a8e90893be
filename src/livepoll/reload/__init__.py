"""Directory watching that feeds the live-reload signal."""

from livepoll.reload.watcher import DirectoryWatchWorker, FileChange, watch_directory

__all__ = [
    "DirectoryWatchWorker",
    "FileChange",
    "watch_directory",
]
