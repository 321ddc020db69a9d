from .verifier import ORPHAN_MARKER, IntegrityVerifier, build_recommendation

__all__ = ["ORPHAN_MARKER", "IntegrityVerifier", "build_recommendation"]
