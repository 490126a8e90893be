"""Demo application serving a page with live reload."""

from livepoll.api.app import create_app

__all__ = ["create_app"]
