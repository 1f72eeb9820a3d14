"""Storage adapters: remote backing store and demo data."""

from .mock import MockDataProvider
from .supabase import SupabaseStore

__all__ = ["MockDataProvider", "SupabaseStore"]
