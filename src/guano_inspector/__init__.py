"""Package initialization for guano-inspector.

Exposes the metadata locator and the request-level pipeline entry points so
callers can `from guano_inspector import locate, process_file`.
"""

from .guano import locate
from .pipeline import inspect_file, process_file

__all__ = ["inspect_file", "locate", "process_file"]
