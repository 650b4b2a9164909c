"""Candidate sources feeding the search engine."""

from .base import CachedCandidateSource, CandidateSource, CandidateSourceChain, SourceCapabilities
from .memory import InMemoryCandidateSource
from .sqlite import SQLiteCandidateSource, SQLiteDatabase, insert_documents

__all__ = [
    "CandidateSource",
    "SourceCapabilities",
    "CandidateSourceChain",
    "CachedCandidateSource",
    "InMemoryCandidateSource",
    "SQLiteCandidateSource",
    "SQLiteDatabase",
    "insert_documents",
]
