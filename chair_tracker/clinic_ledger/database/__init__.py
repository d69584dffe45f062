from .clinic_store import ClinicStore
from .key_value_store import InMemoryKeyValueStore, SqliteKeyValueStore

__all__ = ["ClinicStore", "InMemoryKeyValueStore", "SqliteKeyValueStore"]
