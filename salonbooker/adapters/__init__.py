"""
Adapters layer - External integrations (Supabase REST API) and the in-memory mock.
"""

from .mock_backend import MockBackend
from .supabase_backend import SupabaseBackend

__all__ = ["MockBackend", "SupabaseBackend"]
