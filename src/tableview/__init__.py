"""tableview - materialized, cached views over SQLite tables behind a remote-invocable API."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("tableview")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
