"""Change signalling shared by directory watchers and long-poll requests."""

from livepoll.events.notifier import ChangeNotifier

__all__ = ["ChangeNotifier"]
