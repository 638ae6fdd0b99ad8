"""Edit session controller.

Owns the single in-progress rate cell edit. States::

    IDLE -> EDITING -> SAVING -> IDLE     (saved, rates refetched)
                       SAVING -> ERROR -> EDITING   (failed, text kept)
    EDITING -> IDLE                        (cancel)

Starting a new edit silently discards the previous one. Nothing is applied
to the displayed matrix until the persistence collaborator confirms the
save and the refresh hook has refetched the rate set.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from decimal import Decimal, InvalidOperation

from src.data.base import RatePersistence
from src.models.edit import EditContext, EditSession, EditStatus
from src.models.errors import ErrorKind, InvalidRange, Result

logger = logging.getLogger(__name__)

MIN_RATE = Decimal("0")
MAX_RATE = Decimal("100")

RefreshHook = Callable[[], Awaitable[object]]


def parse_edit_value(text: str) -> Decimal:
    """Parse operator input as a rate. Raises InvalidRange unless finite and in [0, 100]."""
    cleaned = (text or "").strip()
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        raise InvalidRange("Please enter a valid rate between 0 and 100")
    if not value.is_finite() or value < MIN_RATE or value > MAX_RATE:
        raise InvalidRange("Please enter a valid rate between 0 and 100")
    return value


class EditSessionController:
    def __init__(self, persistence: RatePersistence, refresh: RefreshHook | None = None):
        self.persistence = persistence
        self.refresh = refresh
        self._session: EditSession | None = None

    @property
    def session(self) -> EditSession | None:
        return self._session

    @property
    def status(self) -> EditStatus:
        return self._session.status if self._session is not None else EditStatus.IDLE

    def start(
        self,
        record_id: int | str | None,
        field: str,
        current_value: Decimal | None,
        context: EditContext,
        *,
        can_edit: bool,
        table_name: str,
    ) -> bool:
        """Open an edit on a cell. Returns False if the edit is not permitted."""
        if not can_edit:
            logger.debug("Edit refused for record %s: no edit authority", record_id)
            return False
        if record_id is None:
            logger.debug("Edit refused: cell has no persisted id")
            return False

        if self._session is not None:
            logger.debug(
                "Discarding %s edit of record %s for record %s",
                self._session.status.value, self._session.record_id, record_id,
            )
        self._session = EditSession(
            record_id=record_id,
            field=field,
            raw_input="" if current_value is None else str(current_value),
            context=context,
            table_name=table_name,
            old_value=current_value,
        )
        return True

    def update_input(self, text: str) -> None:
        session = self._session
        if session is None or session.status is EditStatus.SAVING:
            return
        self._session = replace(session, raw_input=text, status=EditStatus.EDITING, error_message=None)

    def cancel(self) -> None:
        if self._session is not None and self._session.status is EditStatus.SAVING:
            logger.info("Edit of record %s cancelled while saving; result will be ignored", self._session.record_id)
        self._session = None

    def build_payload(self, session: EditSession, value: Decimal) -> dict:
        return {
            "field": session.field,
            "value": float(value),
            "tableName": session.table_name,
            "oldValue": float(session.old_value) if session.old_value is not None else None,
            "context": session.context.to_payload(),
        }

    async def save(self) -> Result:
        session = self._session
        if session is None:
            return Result.failure(ErrorKind.NO_SESSION, "No rate is being edited")
        if session.status is EditStatus.SAVING:
            return Result.failure(ErrorKind.SAVE_IN_PROGRESS, "A save is already in progress")
        if session.status is EditStatus.ERROR:
            session = self._session = replace(session, status=EditStatus.EDITING)

        try:
            value = parse_edit_value(session.raw_input)
        except InvalidRange as e:
            self._session = replace(session, status=EditStatus.EDITING, error_message=str(e))
            return Result.failure(ErrorKind.INVALID_RANGE, str(e))

        saving = self._session = replace(session, status=EditStatus.SAVING, error_message=None)
        try:
            result = await self.persistence.update_rate(saving.record_id, self.build_payload(saving, value))
        except Exception as e:
            logger.warning("Saving record %s raised: %s", saving.record_id, e)
            result = Result.failure(ErrorKind.PERSISTENCE_FAILURE, f"Failed to update rate: {e}")

        if self._session is not saving:
            # Cancelled or replaced by a newer edit while the request was in flight
            logger.info("Discarding stale save result for record %s", saving.record_id)
            return Result.failure(ErrorKind.STALE_RESULT, "Edit was cancelled before the save completed")

        if not result.ok:
            logger.warning("Saving record %s failed: %s", saving.record_id, result.message)
            self._session = replace(saving, status=EditStatus.ERROR, error_message=result.message)
            return result

        self._session = None
        logger.info("Record %s %s updated to %s", saving.record_id, saving.field, value)
        if self.refresh is not None:
            await self.refresh()
        return Result.success(value=value, message="Rate updated successfully")
