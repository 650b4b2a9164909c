"""Retrieval pipeline components."""

from .classifier import AIQueryClassifier, QueryClassifier, content_type_boosts
from .diversity import DiversityOptimizer, bucket_counts
from .fusion import FusionCombiner, analyze_fusion, reciprocal_rank_fusion
from .keyword import BM25Scorer, tokenize
from .rerank import Reranker, RerankMetadata, RerankOptions
from .search import SearchEngine, StageOutcome
from .vector import cosine_similarity, rank_by_vector

__all__ = [
    "AIQueryClassifier",
    "QueryClassifier",
    "content_type_boosts",
    "DiversityOptimizer",
    "bucket_counts",
    "FusionCombiner",
    "analyze_fusion",
    "reciprocal_rank_fusion",
    "BM25Scorer",
    "tokenize",
    "Reranker",
    "RerankMetadata",
    "RerankOptions",
    "SearchEngine",
    "StageOutcome",
    "cosine_similarity",
    "rank_by_vector",
]
