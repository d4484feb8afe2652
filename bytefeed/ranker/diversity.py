"""Source and author diversity for personalized pages."""

from collections import Counter
from collections.abc import Sequence

from bytefeed.ranker.models import ScoredCandidate


def _author_key(author: str | None) -> str | None:
    if author is None or not author.strip():
        return None
    return author.strip().casefold()


def select_diverse(
    scored: Sequence[ScoredCandidate],
    page_size: int,
    cap: int,
) -> list[ScoredCandidate]:
    """Select a page that limits repeats of any source or author.

    Candidates are admitted in score order while their source and author
    have each appeared fewer than ``cap`` times. Bytes without an author
    are only limited by source. If the cap leaves the page short, the
    remaining slots are backfilled with the next-highest-scored skipped
    candidates.

    Args:
        scored: Candidates sorted by score descending.
        page_size: Items wanted.
        cap: Maximum appearances per source and per author.

    Returns:
        Selected candidates, diverse picks first then backfill.
    """
    selected: list[ScoredCandidate] = []
    skipped: list[ScoredCandidate] = []
    per_source: Counter[str] = Counter()
    per_author: Counter[str] = Counter()

    for item in scored:
        if len(selected) >= page_size:
            break
        author = _author_key(item.author)
        if per_source[item.source_id] >= cap or (
            author is not None and per_author[author] >= cap
        ):
            skipped.append(item)
            continue
        selected.append(item)
        per_source[item.source_id] += 1
        if author is not None:
            per_author[author] += 1

    for item in skipped:
        if len(selected) >= page_size:
            break
        selected.append(item)

    return selected
