"""Prompt templates for byte extraction and source categorization."""

from bytefeed.store.models import ByteCategory, ByteType


_TYPES = ", ".join(t.value for t in ByteType)
_CATEGORIES = ", ".join(c.value for c in ByteCategory)

EXTRACTION_SYSTEM_INSTRUCTION = (
    "You extract short, self-contained insights from newsletters. "
    "Each insight must make sense on its own without the surrounding text, "
    "be between 30 and 500 characters, and carry a quality score from 0.0 to 1.0. "
    "Skip ads, sponsor messages, calls to subscribe, and housekeeping notes. "
    "Respond ONLY with a JSON object, no markdown fences or extra text."
)

_EXTRACTION_TEMPLATE = """## Newsletter
Source: {source_name}
Subject: {subject}

{text}

## Output
Return a JSON object with these fields:
- "bytes": an array of insights, each with
  - "content": the insight text (30-500 characters)
  - "type": one of {types}
  - "author": the person quoted or credited, or null
  - "context": a short phrase of context (max 100 characters), or null
  - "category": one of {categories}
  - "qualityScore": 0.0-1.0, how useful and memorable the insight is
- "summary": two sentences summarizing the newsletter
- "readTimeMinutes": estimated minutes to read the full newsletter
{source_info_section}"""

_SOURCE_INFO_SECTION = """- "newsletterInfo": an object with
  - "name": the publication's human-readable name
  - "website": the URL where people can subscribe, or null if not found
"""

CATEGORIZATION_SYSTEM_INSTRUCTION = (
    "You categorize newsletters for a reading app. "
    "Respond ONLY with a JSON object, no markdown fences or extra text."
)

_CATEGORIZATION_TEMPLATE = """## Newsletter
Name: {name}

{sample}

## Output
Return a JSON object with:
- "description": one sentence describing what the newsletter covers
- "category": one of {categories}
- "tags": up to 5 short lowercase topic tags
"""


def build_extraction_prompt(
    subject: str,
    text: str,
    source_name: str,
    extract_source_info: bool = False,
) -> str:
    """Build the extraction prompt for one edition.

    Args:
        subject: Edition subject.
        text: Edition text, already truncated.
        source_name: Current source display name.
        extract_source_info: Also ask for the publication name and website.

    Returns:
        Prompt text.
    """
    return _EXTRACTION_TEMPLATE.format(
        source_name=source_name,
        subject=subject,
        text=text,
        types=_TYPES,
        categories=_CATEGORIES,
        source_info_section=_SOURCE_INFO_SECTION if extract_source_info else "",
    )


def build_categorization_prompt(name: str, sample: str) -> str:
    """Build the categorization prompt for a new source."""
    return _CATEGORIZATION_TEMPLATE.format(
        name=name, sample=sample, categories=_CATEGORIES
    )
