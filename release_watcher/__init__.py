"""Release watcher: poll sources, extract one value each and report changes."""

from .errors import WatcherError
from .poller import ChangeEvent, Poller, WatcherHooks
from .service import ReleaseWatcher

__version__ = "0.1.0"

__all__ = ["ChangeEvent", "Poller", "ReleaseWatcher", "WatcherError", "WatcherHooks", "__version__"]
