# bot_backend/conversation_state.py: questionnaire progress per conversation (RAM only)
import enum
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

QUESTION_COUNT = 3


class Stage(str, enum.Enum):
    NOT_STARTED = "not_started"
    AWAITING_Q1 = "awaiting_q1"
    AWAITING_Q2 = "awaiting_q2"
    AWAITING_Q3 = "awaiting_q3"
    COMPLETED = "completed"


_AWAITING = {1: Stage.AWAITING_Q1, 2: Stage.AWAITING_Q2, 3: Stage.AWAITING_Q3}


@dataclass
class ConversationState:
    answers: Dict[int, str] = field(default_factory=dict)
    has_started: bool = False

    def next_question(self) -> Optional[int]:
        for idx in range(1, QUESTION_COUNT + 1):
            if idx not in self.answers:
                return idx
        return None

    @property
    def is_complete(self) -> bool:
        return self.next_question() is None

    @property
    def stage(self) -> Stage:
        if not self.has_started and not self.answers:
            return Stage.NOT_STARTED
        nxt = self.next_question()
        return Stage.COMPLETED if nxt is None else _AWAITING[nxt]

    def record(self, question_id: int, answer: str) -> None:
        if question_id not in _AWAITING:
            raise ValueError(f"unknown question {question_id}")
        self.answers[question_id] = answer
        self.has_started = True


class ConversationStore:
    """In-memory map conversation_id -> ConversationState."""

    def __init__(self):
        self._states: Dict[str, ConversationState] = {}
        self._lock = threading.Lock()

    def get(self, conversation_id: str) -> ConversationState:
        with self._lock:
            return self._states.setdefault(conversation_id, ConversationState())

    def reset(self, conversation_id: str) -> ConversationState:
        with self._lock:
            state = self._states[conversation_id] = ConversationState()
            return state

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return {cid: s.stage.value for cid, s in self._states.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
