"""One-time draft restoration prompt for a freshly opened form.

State transitions:
    CHECKING -> NO_DRAFT
             -> DRAFT_FOUND -> RESTORED
                            -> DISCARDING -> DISCARDED
                                          -> DRAFT_FOUND (delete failed)
                            -> DISMISSED
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from gasforms.core.errors import DraftError, InvalidTransitionError
from gasforms.core.logging import get_logger
from gasforms.models.drafts import FormType
from gasforms.services.drafts import DraftStore

logger = get_logger(__name__)


class RestorationState(str, Enum):
    CHECKING = "checking"
    NO_DRAFT = "no_draft"
    DRAFT_FOUND = "draft_found"
    RESTORED = "restored"
    DISCARDING = "discarding"
    DISCARDED = "discarded"
    DISMISSED = "dismissed"


@dataclass
class DraftPrompt:
    """What the UI shows while a draft is waiting for a decision."""
    form_type: FormType
    title: str
    message: str


class DraftRestorationFlow:
    """Checks for a stored draft once and accepts a single decision.

    Dismissing leaves the stored draft in place for a later session.
    """

    def __init__(
        self,
        drafts: DraftStore,
        form_type: Union[FormType, str],
        on_restore: Callable[[Dict[str, Any]], None],
        on_discard: Optional[Callable[[], None]] = None,
    ):
        self.drafts = drafts
        self.form_type = FormType(form_type)
        self.on_restore = on_restore
        self.on_discard = on_discard
        self.state = RestorationState.CHECKING
        self.draft_data: Optional[Dict[str, Any]] = None
        self._checked = False

    @property
    def prompt(self) -> Optional[DraftPrompt]:
        if self.state != RestorationState.DRAFT_FOUND:
            return None
        label = self.form_type.label
        return DraftPrompt(
            form_type=self.form_type,
            title=f"Unsaved {label} draft found",
            message=f"You have an unsaved {label.lower()} from a previous session. "
                    "Would you like to restore it?",
        )

    async def check(self) -> RestorationState:
        """Load the draft. Runs once; later calls return the current state."""
        if self._checked:
            return self.state
        self._checked = True

        try:
            draft = await self.drafts.load(self.form_type)
        except DraftError as e:
            logger.error("Error checking for draft", form_type=self.form_type.value,
                         error=e.app_error.message)
            draft = None

        if draft:
            self.draft_data = draft
            self.state = RestorationState.DRAFT_FOUND
        else:
            self.state = RestorationState.NO_DRAFT
        logger.debug("Draft check finished", form_type=self.form_type.value,
                     state=self.state.value)
        return self.state

    def _require_prompt(self, action: str) -> None:
        if self.state != RestorationState.DRAFT_FOUND:
            raise InvalidTransitionError(self.state.value, action)

    def restore(self) -> Dict[str, Any]:
        """Hand the draft to the form. The caller merges it into live state."""
        self._require_prompt("restore")
        data = self.draft_data or {}
        self.on_restore(data)
        self.state = RestorationState.RESTORED
        logger.info("Draft restored", form_type=self.form_type.value)
        return data

    async def discard(self) -> bool:
        """Delete the stored draft.

        Returns:
            False if the delete failed; the prompt stays up

        No other decision is accepted while the delete is in flight.
        """
        self._require_prompt("discard")
        self.state = RestorationState.DISCARDING
        try:
            await self.drafts.delete(self.form_type)
        except DraftError as e:
            logger.error("Error discarding draft", form_type=self.form_type.value,
                         error=e.app_error.message)
            self.state = RestorationState.DRAFT_FOUND
            return False
        if self.on_discard:
            self.on_discard()
        self.state = RestorationState.DISCARDED
        self.draft_data = None
        return True

    def dismiss(self) -> None:
        """Hide the prompt, keeping the stored draft."""
        self._require_prompt("dismiss")
        self.state = RestorationState.DISMISSED
