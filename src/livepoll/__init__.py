"""Live reload for ASGI applications.

Watches directories for changes and tells connected browser pages to reload,
using plain HTTP long-polling and a script appended to HTML responses.
"""

__version__ = "0.1.0"

from livepoll.config import WatchConfiguration
from livepoll.events import ChangeNotifier
from livepoll.middleware import FileWatcherMiddleware

__all__ = [
    "ChangeNotifier",
    "FileWatcherMiddleware",
    "WatchConfiguration",
    "__version__",
]
