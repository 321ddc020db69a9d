from .hybrid import HybridRanker, fts_match_expression, normalize_fts_score, sanitize_fts_query, vector_distance_to_score
from .retriever import Retriever

__all__ = [
    "HybridRanker",
    "Retriever",
    "fts_match_expression",
    "normalize_fts_score",
    "sanitize_fts_query",
    "vector_distance_to_score",
]
