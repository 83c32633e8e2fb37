from typing import Any, Dict, List, Mapping

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
CARD_VERSION = "1.4"

QUESTIONS: Dict[int, Dict[str, Any]] = {
    1: {
        "title": "What are you looking for right now?",
        "choices": ["Someone to grab coffee with", "A mentor", "A project partner"],
    },
    2: {
        "title": "When are you usually free?",
        "choices": ["Mornings", "Lunch time", "After work"],
    },
    3: {
        "title": "How do you prefer to meet?",
        "choices": ["In person", "Teams call", "Either works"],
    },
}


def _card(body: List[Dict[str, Any]], actions: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "type": "AdaptiveCard",
        "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
        "version": CARD_VERSION,
        "body": body,
        "actions": actions,
    }


def _text(text: str, **extra) -> Dict[str, Any]:
    return {"type": "TextBlock", "text": text, "wrap": True, **extra}


def welcome_card() -> Dict[str, Any]:
    return _card(
        [
            _text("Welcome to Hoogah 👋", size="Large", weight="Bolder"),
            _text("Answer three quick questions and we'll find you a match."),
        ],
        [{"type": "Action.Submit", "title": "Let's go", "data": {"type": "start"}}],
    )


def question_card(question_id: int) -> Dict[str, Any]:
    q = QUESTIONS[question_id]
    return _card(
        [
            _text(f"Question {question_id} of {len(QUESTIONS)}", isSubtle=True),
            _text(q["title"], size="Medium", weight="Bolder"),
        ],
        [
            {
                "type": "Action.Submit",
                "title": choice,
                "data": {"type": "answer", "questionId": question_id, "value": choice},
            }
            for choice in q["choices"]
        ],
    )


def final_match_card(answers: Mapping[int, str]) -> Dict[str, Any]:
    facts = [{"title": QUESTIONS[i]["title"], "value": answers.get(i, "")} for i in sorted(QUESTIONS)]
    return _card(
        [
            _text("You're all set 🎉", size="Large", weight="Bolder"),
            _text("We'll pair you with someone who answered like you:"),
            {"type": "FactSet", "facts": facts},
            _text("Say **restart** to answer again."),
        ],
        [],
    )


def card_message(card: Dict[str, Any]) -> Dict[str, Any]:
    """Reply payload carrying one adaptive card."""
    return {
        "type": "message",
        "attachments": [{"contentType": ADAPTIVE_CARD_CONTENT_TYPE, "content": card}],
    }


def text_message(text: str) -> Dict[str, Any]:
    return {"type": "message", "text": text}
