from __future__ import annotations

import itertools
import logging
import time
from typing import List

from seoul_bites.models import ChatMessage, Role
from seoul_bites.services.gemini import BackendError, LanguageBackend

logger = logging.getLogger(__name__)

GREETING_TEXT = (
    "Annyeonghaseyo! I'm your Seoul dining expert. "
    "Ask me anything about Korean cuisine, dining etiquette, or food history!"
)
CHAT_FAILED_TEXT = "I'm having trouble connecting right now. Please try again later."


class ChatOrchestrator:
    """Owns the conversation transcript and runs one backend turn per user message.

    Messages are only ever appended; the full transcript is handed to the
    backend on every turn.
    """

    def __init__(self, backend: LanguageBackend) -> None:
        self.backend = backend
        self._in_flight = 0
        self._messages: List[ChatMessage] = []
        self._ids = itertools.count(1)
        self._last_ts = 0.0
        self.reset()

    @property
    def pending(self) -> bool:
        """True while any turn is still waiting on the backend."""
        return self._in_flight > 0

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def _timestamp(self) -> float:
        # wall clock can step backwards; creation order must not
        self._last_ts = max(self._last_ts, time.time())
        return self._last_ts

    def _append(self, role: Role, text: str, message_id: str = "") -> ChatMessage:
        msg = ChatMessage(
            id=message_id or str(next(self._ids)),
            role=role,
            text=text,
            timestamp=self._timestamp(),
        )
        self._messages.append(msg)
        return msg

    def reset(self) -> None:
        self._messages = []
        self._append(Role.ASSISTANT, GREETING_TEXT, message_id="init")

    async def send(self, text: str) -> List[ChatMessage]:
        """Append the user's message, ask the backend, append its answer.

        Returns the messages added by this turn. A backend failure becomes an
        ordinary assistant message.
        """
        if not text.strip():
            return []

        history = list(self._messages)
        user_msg = self._append(Role.USER, text)
        self._in_flight += 1
        try:
            answer = await self.backend.chat(history, text)
        except BackendError as e:
            logger.error("Chat error: %s", e)
            answer = CHAT_FAILED_TEXT
        except Exception:
            logger.exception("Unexpected backend failure during chat")
            answer = CHAT_FAILED_TEXT
        finally:
            self._in_flight -= 1

        assistant_msg = self._append(Role.ASSISTANT, answer)
        return [user_msg, assistant_msg]
