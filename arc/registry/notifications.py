"""
Needs-updation broadcast to a single configured notification table.

The table is checked once at startup by from_config(). A configured table
that does not exist is a configuration error. With no table configured,
broadcasts are no-ops that still report success, since the pending
requests themselves already live in field_update_requests.

Insert failures at runtime are logged and never surfaced.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from arc.access.backend_client import BackendClient
from arc.config import ConfigError
from arc.registry.query_fallback import normalize_section
from arc.registry.update_requests import OperationResult

logger = logging.getLogger(__name__)

NO_TABLE_NOTE = "no notification table"


class NotificationBroadcaster:
    def __init__(self, client: BackendClient, table: Optional[str] = None):
        self.client = client
        self.table = table

    @classmethod
    def from_config(cls, client: BackendClient, table: Optional[str]) -> "NotificationBroadcaster":
        """Check the configured table; raise ConfigError when it is unreachable."""
        if not table:
            logger.info("[notifications] no notification table configured")
            return cls(client, None)
        check = client.select(table, limit=1)
        if check.error is not None:
            raise ConfigError(
                f"ARC_NOTIFICATIONS_TABLE '{table}' is not usable: {check.error.message}"
            )
        logger.info("[notifications] broadcasting to '%s'", table)
        return cls(client, table)

    def broadcast(self, section: str, labels: Sequence[str]) -> OperationResult:
        normalized = normalize_section(section)
        fields = [str(label) for label in labels]
        if not self.table:
            logger.debug("[notifications] %s: %d fields (not broadcast)", normalized, len(fields))
            return OperationResult(True, data={"section": normalized, "fields": fields}, note=NO_TABLE_NOTE)

        row = {
            "section": normalized,
            "fields": fields,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.client.insert(self.table, [row])
        if result.error is not None:
            logger.warning("[notifications] broadcast to '%s' failed: %s", self.table, result.error)
            return OperationResult(True, data={"section": normalized, "fields": fields}, note="broadcast failed")
        return OperationResult(True, data={"section": normalized, "fields": fields})
