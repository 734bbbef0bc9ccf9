"""
Session-state helpers for the Streamlit portal.

Kept apart from app.py so they can be imported without starting a
Streamlit script run.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any, Optional

from arc.registry.query_fallback import StudentQueryEngine
from arc.registry.record_mapper import StudentRecord, to_records

logger = logging.getLogger(__name__)


class LatestRequestGuard:
    """
    Latest-wins guard for results written into session state.

    Every load for a view takes a token from issue(), tagged with the
    target it loads (a section code). A result is committed only when its
    token is still the latest for the view and, when an active_key is
    given, its target is still the one selected in state under that key.

    Within one synchronous script run the token check alone never drops
    anything; the target check is what keeps a roster loaded for a
    section the user has since left out of the dashboard. The token
    check covers loads that finish out of order once they run in the
    background.
    """

    def __init__(self, state: MutableMapping, prefix: str = "_arc_request", active_key: Optional[str] = None):
        self.state = state
        self.prefix = prefix
        self.active_key = active_key

    def _key(self, view: str) -> str:
        return f"{self.prefix}:{view}"

    def issue(self, view: str, target: Any = None) -> int:
        token = int(self.state.get(self._key(view), 0)) + 1
        self.state[self._key(view)] = token
        self.state[f"{self._key(view)}:target"] = target
        return token

    def is_latest(self, view: str, token: int) -> bool:
        if self.state.get(self._key(view)) != token:
            return False
        if self.active_key is None:
            return True
        return self.state.get(f"{self._key(view)}:target") == self.state.get(self.active_key)

    def commit(self, view: str, token: int, key: str, value: Any) -> bool:
        """Store value under key if token is still the latest for view."""
        if not self.is_latest(view, token):
            logger.debug("[portal_state] dropping stale result for %s (token %s)", view, token)
            return False
        self.state[key] = value
        return True


def load_section_records(engine: StudentQueryEngine, section: str) -> list[StudentRecord]:
    """Section rows through the fallback engine, mapped to records."""
    return to_records(engine.fetch_by_section(section))
