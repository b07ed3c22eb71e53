"""
Adapter component - filesystem collection exposed as a document store.
"""

from .component import FSAdapter, create_adapter
from .models import AdapterState, SaveMeta, parse_meta
from .ports import ListerPort, PathGuardPort

__all__ = [
    # Entry points
    "FSAdapter",
    "create_adapter",
    # Models
    "AdapterState",
    "SaveMeta",
    "parse_meta",
    # Ports
    "ListerPort",
    "PathGuardPort",
]
