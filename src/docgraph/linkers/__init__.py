# Reference resolution and linking
from .reference_resolver import (
    ReferenceResolutionService,
    ReferenceResolution,
    ResolutionContext,
    ResolutionResult,
    ResolutionStrategy,
    build_default_strategies,
)
from .reference_linker import ReferenceLinker, LinkingResult
from .embedding_similarity import EmbeddingSimilarity, EMBEDDING_AVAILABLE

__all__ = [
    "ReferenceResolutionService",
    "ReferenceResolution",
    "ResolutionContext",
    "ResolutionResult",
    "ResolutionStrategy",
    "build_default_strategies",
    "ReferenceLinker",
    "LinkingResult",
    "EmbeddingSimilarity",
    "EMBEDDING_AVAILABLE",
]
