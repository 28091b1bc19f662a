"""Cold-storage warehouse inventory tracker backed by Supabase."""

__version__ = "0.1.0"
