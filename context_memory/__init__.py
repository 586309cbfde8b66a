"""
Context Memory MCP Server - SQLite-backed memory vault
Copyright 2025 Jurden Bruce
"""

__version__ = "0.1.0"

from .models import UNSET, MemoryListResult, MemoryRecord
from .storage import MemoryStore
from .utils import clamp_importance, normalize_tags

__all__ = [
    'UNSET',
    'MemoryListResult',
    'MemoryRecord',
    'MemoryStore',
    'clamp_importance',
    'normalize_tags',
]
