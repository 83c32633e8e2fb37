# bot.py: three-question onboarding bot (welcome -> Q1 -> Q2 -> Q3 -> match card)
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from bot_backend.activities import (
    MessageActivity,
    TypedActivity,
    UnsupportedActivity,
    strip_mentions,
    submitted_action,
)
from bot_backend.conversation_state import ConversationState, ConversationStore
from presenters import card_message, final_match_card, question_card, welcome_card

log = logging.getLogger("teams-gateway.bot")

SendFn = Callable[[Dict[str, Any]], Awaitable[Any]]

RESTART_PHRASES = frozenset({"hi", "hello", "hey", "start", "restart", "begin"})


def _question_id(raw: Any) -> Optional[int]:
    # bool is an int subclass; floats and "1.7" are not question ids either
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        qid = raw
    elif isinstance(raw, str) and raw.strip().isdecimal():
        qid = int(raw.strip())
    else:
        return None
    return qid if 1 <= qid <= 3 else None


class QuestionnaireBot:
    def __init__(self, store: Optional[ConversationStore] = None):
        self.store = store or ConversationStore()

    async def on_activity(self, activity: TypedActivity, send: SendFn) -> None:
        if isinstance(activity, UnsupportedActivity):
            log.debug("ignoring activity type=%s", activity.type)
            return
        if not activity.conversation_id:
            log.warning("activity id=%s has no conversation, ignoring", activity.id)
            return

        state = self.store.get(activity.conversation_id)

        data = submitted_action(activity)
        if data is not None and await self._on_submit(state, data, send):
            return

        if isinstance(activity, MessageActivity) and activity.text:
            await self._on_text(activity, state, send)

    async def _on_submit(self, state: ConversationState, data: Dict[str, Any], send: SendFn) -> bool:
        kind = data.get("type")
        if kind == "start":
            state.has_started = True
            await self._send_next(state, send)
            return True

        if kind == "answer":
            qid = _question_id(data.get("questionId"))
            answer = data.get("value")
            if qid is None or not answer:
                log.warning("malformed answer submit: %s", data)
                return False
            state.record(qid, str(answer))
            log.info("recorded answer q%s stage=%s", qid, state.stage.value)
            await self._send_next(state, send)
            return True

        return False

    async def _on_text(self, activity: MessageActivity, state: ConversationState, send: SendFn) -> None:
        text = strip_mentions(activity.text).lower()

        if state.is_complete and text in RESTART_PHRASES:
            state = self.store.reset(activity.conversation_id)
            state.has_started = True
            await send(card_message(welcome_card()))
            return

        if not state.has_started:
            state.has_started = True
            await send(card_message(welcome_card()))

    async def _send_next(self, state: ConversationState, send: SendFn) -> None:
        nxt = state.next_question()
        if nxt is None:
            await send(card_message(final_match_card(state.answers)))
        else:
            await send(card_message(question_card(nxt)))
