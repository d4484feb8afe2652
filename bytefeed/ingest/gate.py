"""Deduplication gate for inbound documents."""

from dataclasses import dataclass

import structlog

from bytefeed.config.constants import COMPONENT_INGEST, DEFAULT_SUBJECT
from bytefeed.ingest.classifier import classify_email
from bytefeed.ingest.fingerprint import compute_fingerprint
from bytefeed.ingest.resolver import SourceResolver
from bytefeed.ingest.subscriptions import SubscriptionService
from bytefeed.ingest.text import (
    extract_sender_address,
    extract_sender_name,
    html_to_text,
)
from bytefeed.store.errors import DuplicateFingerprintError
from bytefeed.store.models import Edition
from bytefeed.store.protocols import Repository


logger = structlog.get_logger()

FORWARDED_DISCOVERY = "forwarded"


@dataclass(frozen=True)
class IngestResult:
    """Outcome of ingesting one document.

    Attributes:
        edition_id: New or existing edition (None when rejected).
        source_id: Owning source (None when rejected).
        is_duplicate: The fingerprint was already known.
        rejected_reason: Why the document was screened out, if it was.
    """

    edition_id: str | None
    source_id: str | None
    is_duplicate: bool = False
    rejected_reason: str | None = None


class IngestionGate:
    """Fingerprints documents and creates pending editions for new ones.

    A document whose fingerprint already exists short-circuits to the
    existing edition. Losing an insert race on the unique fingerprint is
    handled the same way.
    """

    def __init__(
        self,
        repository: Repository,
        resolver: SourceResolver,
        subscriptions: SubscriptionService | None = None,
        screen_junk: bool = False,
    ) -> None:
        """Initialize the gate.

        Args:
            repository: Persistence collaborator.
            resolver: Source resolver for unknown senders.
            subscriptions: Subscription service used to link forwarding users.
            screen_junk: Reject documents the classifier marks as junk.
        """
        self._repo = repository
        self._resolver = resolver
        self._subscriptions = subscriptions or SubscriptionService(repository)
        self._screen_junk = screen_junk
        self._log = logger.bind(component=COMPONENT_INGEST, subcomponent="gate")

    def ingest_document(
        self,
        sender_identity: str,
        subject: str | None,
        text: str,
        *,
        sender_name: str | None = None,
        html: str | None = None,
        user_id: str | None = None,
    ) -> IngestResult:
        """Ingest one document.

        Args:
            sender_identity: Sender address or raw ``From`` header.
            subject: Document subject (blank becomes "No Subject").
            text: Plain-text body (derived from ``html`` when empty).
            sender_name: Display name for a new Source.
            html: Optional HTML body.
            user_id: User who forwarded the document, linked to the Source.

        Returns:
            The ingestion outcome.
        """
        sender = extract_sender_address(sender_identity)
        name = sender_name or extract_sender_name(sender_identity)
        subject = (subject or "").strip() or DEFAULT_SUBJECT
        if not text.strip() and html:
            text = html_to_text(html)

        if not text.strip():
            self._log.info("document_rejected", sender=sender, reason="empty")
            return IngestResult(None, None, rejected_reason="Empty document")

        if self._screen_junk:
            classification = classify_email(subject, sender, text, html or "")
            if classification.is_junk:
                self._log.info(
                    "document_rejected",
                    sender=sender,
                    reason=classification.reason,
                    category=classification.category.value,
                )
                return IngestResult(None, None, rejected_reason=classification.reason)

        fingerprint = compute_fingerprint(subject, text)
        existing = self._repo.get_edition_by_fingerprint(fingerprint)
        if existing is not None:
            return self._duplicate(existing, user_id)

        source = self._resolver.resolve(sender, name, text)
        try:
            edition = self._repo.create_edition(
                source_id=source.id,
                subject=subject,
                text_content=text,
                raw_content=html or text,
                fingerprint=fingerprint,
            )
        except DuplicateFingerprintError:
            winner = self._repo.get_edition_by_fingerprint(fingerprint)
            if winner is None:
                raise
            self._log.info("fingerprint_race_lost", fingerprint=fingerprint[:16])
            return self._duplicate(winner, user_id)

        if user_id is not None:
            self._subscriptions.subscribe(user_id, source.id, FORWARDED_DISCOVERY)

        self._log.info(
            "edition_ingested",
            edition_id=edition.id,
            source_id=source.id,
            fingerprint=fingerprint[:16],
        )
        return IngestResult(edition_id=edition.id, source_id=source.id)

    def _duplicate(self, edition: Edition, user_id: str | None) -> IngestResult:
        if user_id is not None:
            self._subscriptions.subscribe(user_id, edition.source_id, FORWARDED_DISCOVERY)
        self._log.info(
            "duplicate_edition",
            edition_id=edition.id,
            source_id=edition.source_id,
        )
        return IngestResult(
            edition_id=edition.id,
            source_id=edition.source_id,
            is_duplicate=True,
        )
