"""Centralized constants for opdeck.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Remote services ----------
LIST_SERVICE_URL = "https://graphql.anilist.co"
THEME_INDEX_URL = "https://api.animethemes.moe"
THEME_INCLUDES = (
    "animethemes.song.artists,"
    "animethemes.animethemeentries.videos,"
    "animethemes.animethemeentries.videos.audio"
)
OPENING_TYPE = "OP"

# ---------- HTTP / Retry ----------
REQUEST_TIMEOUT = 30.0
MAX_RETRIES = 6
BASE_BACKOFF_MS = 1000
MAX_BACKOFF_MS = 16000
MIN_RETRY_AFTER_MS = 1000
RETRY_JITTER_MS = 120

# ---------- List pagination ----------
PAGE_SIZE = 50
PAGE_DELAY_MS = 300

# ---------- Import run ----------
DEFAULT_DELAY_MS = 500
DEFAULT_MAX_SHOWS = 1000
MIN_MAX_SHOWS = 10
MAX_CARDS_PER_SHOW = 5
ITEM_JITTER_MS = 100
DEFAULT_MAX_STORED_CARDS = 5000

# ---------- Scheduling ----------
DEFAULT_EASY_DELAY_HOURS = 48
MIN_EASY_DELAY_HOURS = 1
MAX_EASY_DELAY_HOURS = 720
RELEARN_MINUTES = 10
STARTING_EASE = 2.5
MIN_EASE = 1.3
EASE_STEP_AGAIN = 0.2
EASE_STEP_HARD = 0.15
EASE_STEP_EASY = 0.15
HARD_MULTIPLIER = 1.2
EASY_BONUS = 1.3
FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6

# ---------- Persistence ----------
BLOB_VERSION = 1
SCHEDULE_KEY = "schedule"
THEME_CACHE_KEY = "theme_cache"
SETTINGS_KEY = "settings"
CARDS_KEY = "cards"
