"""Ingestion: deduplication, source resolution, and subscriptions."""

from bytefeed.ingest.classifier import EmailCategory, EmailClassification, classify_email
from bytefeed.ingest.fingerprint import compute_fingerprint, normalize_text
from bytefeed.ingest.gate import IngestionGate, IngestResult
from bytefeed.ingest.resolver import Categorizer, SourceResolver
from bytefeed.ingest.subscriptions import SubscriptionService
from bytefeed.ingest.text import (
    extract_sender_address,
    extract_sender_name,
    html_to_text,
    sender_domain,
)


__all__ = [
    "Categorizer",
    "EmailCategory",
    "EmailClassification",
    "IngestResult",
    "IngestionGate",
    "SourceResolver",
    "SubscriptionService",
    "classify_email",
    "compute_fingerprint",
    "extract_sender_address",
    "extract_sender_name",
    "html_to_text",
    "normalize_text",
    "sender_domain",
]
