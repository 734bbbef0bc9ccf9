"""
Decorative generative-text helpers for the login and welcome screens.

Both calls go to the Gemini generateContent REST endpoint and both are
optional: with no API key, or on any failure, a fixed canned response is
returned. Nothing here ever raises to the caller.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

STRENGTH_LEVELS = ("weak", "moderate", "strong", "legendary")


@dataclass(frozen=True)
class SecurityAnalysis:
    strength: str
    feedback: str
    tips: list[str] = field(default_factory=list)


SHORT_PASSWORD_ANALYSIS = SecurityAnalysis(
    strength="weak",
    feedback="Insufficient security parameters.",
    tips=["Input at least 8 alphanumeric characters."],
)

OFFLINE_ANALYSIS = SecurityAnalysis(
    strength="moderate",
    feedback="Verification sub-routines offline. Proceed with caution.",
    tips=["Include complex symbols", "Increase entropy"],
)

_ANALYSIS_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "strength": {"type": "STRING"},
        "feedback": {"type": "STRING"},
        "tips": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["strength", "feedback", "tips"],
}


def fallback_welcome(name: str) -> str:
    return f"Access authorized. Welcome to A.R.C. Command, {name}."


class GenerativeAssistant:
    """Thin Gemini client. A missing api_key puts it in canned-response mode."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-2.0-flash",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _generate(self, prompt: str, generation_config: Optional[dict[str, Any]] = None) -> str:
        payload: dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        if generation_config:
            payload["generationConfig"] = generation_config
        resp = self._session.post(
            GEMINI_ENDPOINT.format(model=self.model),
            params={"key": self.api_key},
            json=payload,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        parts = body["candidates"][0]["content"]["parts"]
        return "".join(p.get("text", "") for p in parts).strip()

    def analyze_security(self, password: str) -> SecurityAnalysis:
        """Strength verdict for a password; canned responses when offline."""
        if not password or len(password) < 3:
            return SHORT_PASSWORD_ANALYSIS
        if not self.enabled:
            return OFFLINE_ANALYSIS

        prompt = (
            f'Analyze the security of this system password: "{password}". '
            "Provide a JSON object with 'strength' (weak, moderate, strong, legendary), "
            "'feedback' (a technical, sharp security comment), and 'tips' "
            "(an array of 2 improvement suggestions)."
        )
        try:
            text = self._generate(prompt, {
                "responseMimeType": "application/json",
                "responseSchema": _ANALYSIS_SCHEMA,
            })
            data = json.loads(text or "{}")
            strength = str(data["strength"]).lower()
            if strength not in STRENGTH_LEVELS:
                raise ValueError(f"unknown strength {strength!r}")
            return SecurityAnalysis(
                strength=strength,
                feedback=str(data["feedback"]),
                tips=[str(t) for t in data.get("tips") or []],
            )
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("[generative] security analysis failed: %s", e)
            return OFFLINE_ANALYSIS

    def welcome_message(self, name: str) -> str:
        if not self.enabled:
            return fallback_welcome(name)
        prompt = (
            "Generate a short, professional, high-tech welcome greeting for a user named "
            f'"{name}" who just logged into A.R.C. (Automated Reporting Central). '
            "Keep it under 15 words and sound authoritative yet welcoming."
        )
        try:
            text = self._generate(prompt)
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("[generative] welcome message failed: %s", e)
            return fallback_welcome(name)
        return text or fallback_welcome(name)
