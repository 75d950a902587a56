"""
Game Manager Utility Modules

File helpers shared by the configuration store and the index cache.
"""

from .atomic_write import (
    atomic_write_text,
    atomic_write_json,
    atomic_write_bytes,
)

__all__ = [
    "atomic_write_text",
    "atomic_write_json",
    "atomic_write_bytes",
]
