"""User-to-source subscription management."""

import structlog

from bytefeed.config.constants import COMPONENT_INGEST
from bytefeed.store.errors import SourceNotFoundError
from bytefeed.store.models import Subscription
from bytefeed.store.protocols import Repository


logger = structlog.get_logger()


class SubscriptionService:
    """Keeps subscriptions and source subscriber counts consistent.

    The subscriber count changes only when a subscription actually flips
    between active and inactive, so repeated calls are idempotent.
    """

    def __init__(self, repository: Repository) -> None:
        """Initialize the service.

        Args:
            repository: Persistence collaborator.
        """
        self._repo = repository
        self._log = logger.bind(component=COMPONENT_INGEST, subcomponent="subscriptions")

    def subscribe(
        self, user_id: str, source_id: str, discovery_method: str = "search"
    ) -> Subscription:
        """Activate a user's subscription to a source.

        Args:
            user_id: Subscribing user.
            source_id: Target source.
            discovery_method: How the user found the source.

        Returns:
            The active subscription.

        Raises:
            SourceNotFoundError: If the source does not exist.
        """
        with self._repo.transaction("subscribe"):
            if self._repo.get_source(source_id) is None:
                raise SourceNotFoundError(source_id)

            existing = self._repo.get_subscription(user_id, source_id)
            if existing is not None and existing.is_active:
                return existing

            subscription = self._repo.upsert_subscription(
                user_id,
                source_id,
                is_active=True,
                discovery_method=discovery_method,
            )
            self._repo.adjust_subscriber_count(source_id, 1)

        self._log.info(
            "subscription_activated",
            user_id=user_id,
            source_id=source_id,
            discovery_method=discovery_method,
        )
        return subscription

    def unsubscribe(self, user_id: str, source_id: str) -> Subscription | None:
        """Deactivate a user's subscription to a source.

        Returns:
            The inactive subscription, or None if the user never subscribed.

        Raises:
            SourceNotFoundError: If the source does not exist.
        """
        with self._repo.transaction("unsubscribe"):
            if self._repo.get_source(source_id) is None:
                raise SourceNotFoundError(source_id)

            existing = self._repo.get_subscription(user_id, source_id)
            if existing is None or not existing.is_active:
                return existing

            subscription = self._repo.upsert_subscription(
                user_id, source_id, is_active=False
            )
            self._repo.adjust_subscriber_count(source_id, -1)

        self._log.info("subscription_deactivated", user_id=user_id, source_id=source_id)
        return subscription
