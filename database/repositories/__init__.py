from database.repositories.base import BaseRepository
from database.repositories.center import CenterRepository
from database.repositories.embedding import CenterEmbeddingRepository

__all__ = [
    'BaseRepository',
    'CenterRepository',
    'CenterEmbeddingRepository',
]
