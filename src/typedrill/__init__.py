"""Typing challenges extracted from real source repositories."""
from .models import CharBudget, Challenge, ChunkType, CodeChunk, DifficultyLevel
from .repository import GitRepository

__all__ = [
    "CharBudget",
    "Challenge",
    "ChunkType",
    "CodeChunk",
    "DifficultyLevel",
    "GitRepository",
]
