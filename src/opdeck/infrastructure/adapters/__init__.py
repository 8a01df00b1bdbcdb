# Infrastructure Remote Adapters Package
from .anilist import AniListFetcher
from .animethemes import AnimeThemesIndex

__all__ = ["AniListFetcher", "AnimeThemesIndex"]
