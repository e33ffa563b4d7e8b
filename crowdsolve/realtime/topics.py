# crowdsolve/realtime/topics.py
from typing import Any, Optional

USER_PREFIX = "user:"
PROBLEM_PREFIX = "problem:"


def _clean_id(value: Any) -> str:
    if value is None:
        raise ValueError("topic id is required")
    text = str(value).strip()
    if not text:
        raise ValueError("topic id is required")
    return text


def user_topic(user_id: Any) -> str:
    """Canal privado de un usuario (entrega de notificaciones)."""
    return USER_PREFIX + _clean_id(user_id)


def problem_topic(problem_id: Any) -> str:
    """Canal público de un problema (presencia + eventos de contenido)."""
    return PROBLEM_PREFIX + _clean_id(problem_id)


def is_problem_topic(topic: str) -> bool:
    return topic.startswith(PROBLEM_PREFIX)


def is_user_topic(topic: str) -> bool:
    return topic.startswith(USER_PREFIX)


def problem_id_of(topic: str) -> Optional[str]:
    if not is_problem_topic(topic):
        return None
    return topic[len(PROBLEM_PREFIX):]
