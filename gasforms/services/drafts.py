"""Single-slot form drafts per (user, form type).

Drafts live in the ``form_drafts`` collection, unique on
``(user_id, form_type)``; saving always upserts on that pair so a user never
accumulates more than one draft per form.
"""
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, TypeVar, Union

from gasforms.core.errors import (
    DraftError,
    NOT_FOUND_CODE,
    RetryPolicy,
    log_error,
    parse_error,
    with_retry,
)
from gasforms.core.logging import get_logger
from gasforms.models.drafts import FormDraft, FormType
from gasforms.services.remote_store import RemoteStore

logger = get_logger(__name__)

T = TypeVar("T")

COLLECTION = "form_drafts"
CONFLICT_KEYS = ("user_id", "form_type")


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _item_has_value(item: Any) -> bool:
    if isinstance(item, Mapping):
        return any(not _is_blank(v) for v in item.values())
    if isinstance(item, (list, tuple)):
        return any(not _is_blank(v) for v in item)
    return not _is_blank(item)


def _is_meaningful(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple)):
        return any(_item_has_value(item) for item in value)
    if isinstance(value, Mapping):
        return any(not _is_blank(v) for v in value.values())
    return True


def has_meaningful_data(form_data: Mapping[str, Any]) -> bool:
    """True when at least one top-level field holds user-entered data.

    Strings count when non-blank, numbers when non-zero, lists when some
    element has a non-empty field, mappings when some value is non-empty.
    Forms that were opened but never touched are not worth a draft.
    """
    return any(_is_meaningful(value) for value in form_data.values())


class DraftStore:
    """Persists, loads and deletes the current user's form drafts.

    ``user_id`` comes from the auth layer; ``None`` means signed out, in which
    case every operation is a no-op.
    """

    def __init__(self, store: RemoteStore, user_id: Optional[str],
                 retry_policy: Optional[RetryPolicy] = None):
        self.store = store
        self.user_id = user_id
        self.retry_policy = retry_policy or RetryPolicy()

    def _key(self, form_type: Union[FormType, str]) -> Dict[str, str]:
        return {"user_id": self.user_id, "form_type": FormType(form_type).value}

    async def _call(self, operation: str, form_type: Union[FormType, str],
                    fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await with_retry(fn, self.retry_policy)
        except Exception as e:
            app_error = parse_error(e)
            log_error(app_error, f"drafts.{operation}:{FormType(form_type).value}")
            raise DraftError(operation, app_error) from e

    async def save(self, form_type: Union[FormType, str], form_data: Dict[str, Any]) -> bool:
        """Upsert the draft for ``form_type``.

        Returns:
            False if skipped (signed out or nothing meaningful), True once stored

        Raises:
            DraftError: the remote store rejected the upsert
        """
        if self.user_id is None:
            return False

        form_type = FormType(form_type)
        if not has_meaningful_data(form_data):
            logger.debug("No meaningful data to save", form_type=form_type.value)
            return False

        row = FormDraft(user_id=self.user_id, form_type=form_type, form_data=form_data).to_row()
        await self._call("save", form_type,
                         lambda: self.store.upsert(COLLECTION, row, CONFLICT_KEYS))
        logger.info("Draft saved", form_type=form_type.value, user_id=self.user_id)
        return True

    async def load(self, form_type: Union[FormType, str]) -> Optional[Dict[str, Any]]:
        """Return the stored form data, or None if there is no draft."""
        if self.user_id is None:
            return None

        try:
            row = await self._call(
                "load", form_type,
                lambda: self.store.select_one(COLLECTION, self._key(form_type),
                                              columns="form_data,updated_at"),
            )
        except DraftError as e:
            if e.app_error.code == NOT_FOUND_CODE:
                return None
            raise
        if row is None:
            return None
        return row.get("form_data") or {}

    async def has(self, form_type: Union[FormType, str]) -> bool:
        """Check for a draft without fetching its payload."""
        if self.user_id is None:
            return False

        try:
            row = await self._call(
                "has", form_type,
                lambda: self.store.select_one(COLLECTION, self._key(form_type), columns="id"),
            )
        except DraftError as e:
            if e.app_error.code == NOT_FOUND_CODE:
                return False
            raise
        return row is not None

    async def delete(self, form_type: Union[FormType, str]) -> None:
        """Remove the draft, after submission or an explicit discard."""
        if self.user_id is None:
            return

        await self._call("delete", form_type,
                         lambda: self.store.delete_where(COLLECTION, self._key(form_type)))
        logger.info("Draft deleted", form_type=FormType(form_type).value, user_id=self.user_id)
