"""HTTP surface: the dashboard API and the host-side actor storage server."""

from flarescope.api.app import create_app
from flarescope.api.context import AppContext
from flarescope.api.storage_server import create_storage_app

__all__ = ["create_app", "create_storage_app", "AppContext"]
