from .base import Base
from .center import Center, CenterProgram, CenterEmbedding, EMBEDDING_DIMENSIONS

__all__ = [
    'Base',
    'Center',
    'CenterProgram',
    'CenterEmbedding',
    'EMBEDDING_DIMENSIONS',
]
