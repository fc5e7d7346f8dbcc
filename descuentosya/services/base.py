from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from descuentosya.config import Config
from descuentosya.observability import increment_counter
from descuentosya.repository import CatalogRepository
from descuentosya.services.events import DomainEvent
from descuentosya.services.locking import EntityLockRegistry
from descuentosya.services.notification_service import NotificationDispatcher, NotificationService
from descuentosya.services.results import CommandResult, ErrorKind


class MarketplaceService:
    """Shared wiring for the command services: repository, locks, outbox, config."""

    rejection_metric = "commands_rejected_total"

    def __init__(
        self,
        db_session: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        locks: Optional[EntityLockRegistry] = None,
        config: type[Config] = Config,
    ) -> None:
        self.db = db_session
        self.repo = CatalogRepository(db_session)
        self.config = config
        self.dispatcher = dispatcher or NotificationDispatcher(NotificationService(), config=config)
        self.locks = locks if locks is not None else EntityLockRegistry()
        self.logger = logging.getLogger(self.__class__.__module__)

    def _commit(self, action: str, **context) -> None:
        try:
            self.repo.commit()
        except SQLAlchemyError:
            self.repo.rollback()
            self.logger.exception("Storage error while trying to %s", action, extra=context)
            raise

    def _reject(self, error: ErrorKind, message: str, value=None, **details) -> CommandResult:
        increment_counter(self.rejection_metric, labels={"reason": error.value})
        self.logger.info("Command rejected (%s): %s", error.value, message, extra=details)
        return CommandResult.fail(error, message, value=value, **details)

    def _publish(self, events: List[DomainEvent]) -> List[DomainEvent]:
        self.dispatcher.dispatch(events)
        return events
