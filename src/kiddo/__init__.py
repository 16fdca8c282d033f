"""
AI Reading Content Pipeline

This package turns a topic and a reading level into an ordered set of
reading items, each illustrated with a generated image and narrated with a
generated voice track, and plays those tracks back one at a time.

**Version**: 0.1.0
**Python**: >=3.11
**Key Dependencies**: instructor, pydantic, httpx, elevenlabs
"""

__version__ = "0.1.0"
__author__ = "Kiddo"

CONTENT_TYPES = ["words", "sentences", "passage", "story"]
READING_LEVELS = ["beginner", "intermediate", "advanced"]

__all__ = [
    "__version__",
    "__author__",
    "CONTENT_TYPES",
    "READING_LEVELS",
]
