"""
Repository Layer - Data Access

Abstract store contracts and their Supabase / local-file implementations.
Services depend on the contracts only.
"""
from storesync.repositories.base import RecordStore, RemoteStores, LocalCollectionStore
from storesync.repositories.supabase_store import SupabaseRecordStore, SupabaseOrderStore, build_supabase_stores
from storesync.repositories.local_store import JsonFileLocalStore

__all__ = [
    'RecordStore',
    'RemoteStores',
    'LocalCollectionStore',
    'SupabaseRecordStore',
    'SupabaseOrderStore',
    'build_supabase_stores',
    'JsonFileLocalStore',
]
