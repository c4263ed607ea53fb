"""Services module."""

from .extraction import TextExtractor
from .matching import IdentityMatcher
from .merger import GradeMerger
from .pipeline import GradingPipeline
from .selector import BestFileSelector
from .llm.service import GradingLLMService

__all__ = [
    "TextExtractor",
    "IdentityMatcher",
    "GradeMerger",
    "GradingPipeline",
    "BestFileSelector",
    "GradingLLMService"
]
