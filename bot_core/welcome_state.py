# File: bot_core/welcome_state.py
import logging
from typing import Optional

from botbuilder.core import Storage  # type: ignore
from pydantic import ValidationError

from state_models import WelcomeState

log = logging.getLogger(__name__)

WELCOME_STATE_KEY_PREFIX = "welcome-state"


class WelcomeStateStore:
    """
    Per-user welcome records kept in a Bot Framework Storage.

    Records are stored as plain JSON dicts under
    ``welcome-state/{channel_id}/{user_id}`` so any Storage backend
    (MemoryStorage, RedisStorage) can hold them.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    @staticmethod
    def key_for(channel_id: Optional[str], user_id: str) -> str:
        return f"{WELCOME_STATE_KEY_PREFIX}/{channel_id or 'unknown'}/{user_id}"

    async def get(self, channel_id: Optional[str], user_id: str) -> WelcomeState:
        """Returns the user's record, creating a fresh one if none is stored."""
        key = self.key_for(channel_id, user_id)
        items = await self.storage.read([key])
        raw = items.get(key) if items else None

        state: Optional[WelcomeState] = None
        if isinstance(raw, WelcomeState):
            state = raw
        elif isinstance(raw, dict):
            payload = {k: v for k, v in raw.items() if k != "e_tag"}
            try:
                state = WelcomeState.model_validate(payload)
            except ValidationError as e:
                log.warning(f"Discarding unreadable welcome state for {key}: {e}")
        elif raw is not None:
            log.warning(f"Unexpected welcome state type {type(raw).__name__} for {key}, starting fresh.")

        if state is None:
            log.debug(f"No welcome state for {key}, creating one.")
            state = WelcomeState(user_id=user_id, channel_id=channel_id or "unknown")
        state.touch()
        return state

    async def save(self, state: WelcomeState) -> None:
        key = self.key_for(state.channel_id, state.user_id)
        data = state.model_dump(mode="json")
        # "*" overwrites whatever e_tag the storage holds for this key.
        data["e_tag"] = "*"
        await self.storage.write({key: data})
        log.debug(f"Saved welcome state for {key} (welcomed={state.welcomed}).")

    async def mark_welcomed(self, state: WelcomeState) -> WelcomeState:
        state.mark_welcomed()
        await self.save(state)
        log.info(
            f"Marked user {state.user_id} as welcomed (count={state.welcome_count}).",
            extra={"event_type": "user_welcomed", "user_id": state.user_id},
        )
        return state
