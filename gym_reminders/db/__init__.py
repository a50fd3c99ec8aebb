from .supabase import SupabaseClient, SupabaseError, get_supabase_client

__all__ = ["SupabaseClient", "SupabaseError", "get_supabase_client"]
