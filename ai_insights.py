# ai_insights.py
"""
Motivational text from a hosted language model.

Nothing in the scheduling code depends on this module; when no API key is
configured (or the call fails) callers get a plain fallback message.
"""
import os
from typing import Any, Dict, Optional

import requests

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-haiku-20240307"
DEFAULT_MAX_TOKENS = 300
DEFAULT_TIMEOUT = 15


class AIServiceError(Exception):
    pass


class AIUnavailable(AIServiceError):
    """No API key configured."""


class AIRequestError(AIServiceError):
    """Transport failure, non-2xx response, or a body we can't read."""


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        value = None
    if value is not None and value > 0:
        return value
    print(f"[_settings] ignoring {name}={raw!r}, using {default}")
    return default


def _settings() -> Dict[str, Any]:
    return {
        "api_key": os.environ.get("ANTHROPIC_API_KEY", "").strip(),
        "model": os.environ.get("AI_MODEL", DEFAULT_MODEL),
        "max_tokens": _env_number("AI_MAX_TOKENS", DEFAULT_MAX_TOKENS, int),
        "timeout": _env_number("AI_TIMEOUT", DEFAULT_TIMEOUT, float),
    }


def is_ai_enabled() -> bool:
    return bool(_settings()["api_key"])


def generate_text(prompt: str, max_tokens: Optional[int] = None) -> str:
    """Send one prompt, return the model's text."""
    cfg = _settings()
    if not cfg["api_key"]:
        raise AIUnavailable("ANTHROPIC_API_KEY is not set")

    headers = {
        "x-api-key": cfg["api_key"],
        "anthropic-version": API_VERSION,
        "content-type": "application/json",
    }
    payload = {
        "model": cfg["model"],
        "max_tokens": max_tokens or cfg["max_tokens"],
        "temperature": 0.3,
        "messages": [{"role": "user", "content": prompt}],
    }
    try:
        r = requests.post(API_URL, json=payload, headers=headers, timeout=cfg["timeout"])
    except requests.RequestException as e:
        raise AIRequestError(f"AI request failed: {e}") from e
    if r.status_code != 200:
        raise AIRequestError(f"AI request returned {r.status_code}: {r.text[:200]}")

    try:
        blocks = r.json()["content"]
        text = "".join(b.get("text", "") for b in blocks if b.get("type") == "text")
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise AIRequestError("Unexpected AI response body") from e
    if not text.strip():
        raise AIRequestError("AI response had no text")
    return text.strip()


def build_motivation_prompt(summary: Dict[str, Any]) -> str:
    """
    summary is progress.daily_summary(): today, due, completed, pending
    (habit names) and streaks ({name: days}).
    """
    pending = ", ".join(summary.get("pending") or []) or "none"
    streaks = ", ".join(f"{name} ({days} days)" for name, days in (summary.get("streaks") or {}).items() if days)
    return (
        "You are a warm, practical habit coach. Write 2-3 short sentences of "
        "encouragement for today. Be specific, no lists, no emojis.\n\n"
        f"Date: {summary.get('today')}\n"
        f"Habits due today: {summary.get('due', 0)}\n"
        f"Completed so far: {summary.get('completed', 0)}\n"
        f"Still pending: {pending}\n"
        f"Active streaks: {streaks or 'none yet'}\n"
    )


def fallback_message(summary: Dict[str, Any]) -> str:
    due = summary.get("due", 0)
    done = summary.get("completed", 0)
    if due == 0:
        return "Nothing scheduled today. Enjoy the rest day!"
    if done >= due:
        return f"All {due} habits done today. Great work, keep the streak going!"
    return f"{done} of {due} habits done so far. One more small step counts."


def motivational_message(summary: Dict[str, Any]) -> Dict[str, Any]:
    """Returns {'message': str, 'aiGenerated': bool}."""
    try:
        text = generate_text(build_motivation_prompt(summary))
        return {"message": text, "aiGenerated": True}
    except AIUnavailable:
        return {"message": fallback_message(summary), "aiGenerated": False}
    except AIRequestError as e:
        print(f"[motivational_message] AI error, using fallback: {e}")
        return {"message": fallback_message(summary), "aiGenerated": False}
