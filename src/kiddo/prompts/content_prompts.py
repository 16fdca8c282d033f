"""Prompts for reading content, illustrations and narration.

This module contains the prompts used by TextClient to request reading
content, and the styling wrapped around item text by ImagePollClient.
"""

from kiddo.models.content import ContentType, ReadingLevel

CONTENT_SYSTEM_PROMPT = (
    "You are a helpful assistant creating educational reading content for children. "
    "Respond *only* with the requested content, without any extra explanations, "
    "introductions, or formatting beyond the requested items."
)

STORY_LEVEL_HINTS = {
    ReadingLevel.BEGINNER: " Use simple words and short sentences.",
    ReadingLevel.INTERMEDIATE: " Include some dialogue and descriptive language.",
    ReadingLevel.ADVANCED: " Use richer vocabulary and more complex sentences.",
}


def build_content_prompt(
    topic: str,
    content_type: ContentType,
    reading_level: ReadingLevel,
) -> str:
    """Build the user prompt for one content request.

    Args:
        topic: Topic or story title
        content_type: Kind of content requested
        reading_level: Target reading level

    Returns:
        User prompt string
    """
    level = reading_level.value

    if content_type == ContentType.WORDS:
        return (
            f'Generate a list of 10 vocabulary words related to "{topic}" suitable for '
            f"a {level} reading level. List each word on a new line."
        )
    if content_type == ContentType.SENTENCES:
        return (
            f'Generate 5 simple sentences about "{topic}" suitable for a {level} '
            f"reading level. Each sentence should be on a new line."
        )
    if content_type == ContentType.PASSAGE:
        return (
            f'Generate a short reading passage (around 50-100 words) about "{topic}" '
            f"suitable for a {level} reading level."
        )
    if content_type == ContentType.STORY:
        return (
            f'Write a children\'s story (around 150-300 words) titled "{topic}" '
            f"suitable for a {level} reading level." + STORY_LEVEL_HINTS[reading_level]
        )
    return f'Write a short text about "{topic}".'


# Illustration styling
IMAGE_STYLE_TEMPLATE = (
    "A claymorphism style illustration of {subject}, soft rounded shapes, pastel colors, "
    "subtle shadows, 3D clay-like appearance, smooth edges, child-friendly, playful, "
    "colorful, safe for kids"
)

IMAGE_NEGATIVE_PROMPT = (
    "scary, violent, inappropriate, realistic, photographic, sharp edges, flat design, "
    "2D, dark colors, complex textures"
)


def build_image_prompt(subject: str) -> str:
    return IMAGE_STYLE_TEMPLATE.format(subject=subject.strip())
