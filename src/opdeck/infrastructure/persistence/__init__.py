# Infrastructure Persistence Package
from .blob_store import JsonBlobStore
from .repositories import CardStore, ScheduleRepository, SettingsRepository, ThemeCache

__all__ = [
    "JsonBlobStore",
    "CardStore",
    "ScheduleRepository",
    "SettingsRepository",
    "ThemeCache",
]
