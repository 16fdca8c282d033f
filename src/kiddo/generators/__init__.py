"""
Generators for reading content jobs.

This module contains:
- ItemMediaOrchestrator: image and narration for one item, concurrently
- GenerationJobCoordinator: one job from topic to persisted set
"""

from kiddo.generators.job_coordinator import GenerationJobCoordinator
from kiddo.generators.media_orchestrator import ItemMediaOrchestrator

__all__ = ["GenerationJobCoordinator", "ItemMediaOrchestrator"]
