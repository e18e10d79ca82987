"""HTTP surface of the users auth package."""

from usersauth.api.app import create_app

__all__ = ["create_app"]
