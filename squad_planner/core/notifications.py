"""
Best-effort squad system messages ("X joined the squad", ...).

dispatch() never raises and never blocks the mutation that triggered it: the
message is written on a daemon thread and any failure is logged and dropped.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Optional

from squad_planner.database.rows import RowAccessor

logger = logging.getLogger(__name__)

RSVP_LABELS = {"present": "Present", "absent": "Absent", "maybe": "Maybe"}


class SystemMessenger:
    def __init__(self, rows: Optional[RowAccessor], background: bool = True):
        self.rows = rows
        self.background = background

    def dispatch(self, squad_id: str, content: str) -> None:
        if self.rows is None:
            return
        if self.background:
            threading.Thread(target=self._send, args=(squad_id, content), daemon=True).start()
        else:
            self._send(squad_id, content)

    def _send(self, squad_id: str, content: str) -> None:
        try:
            result = self.rows.insert("messages", {
                "squad_id": squad_id,
                "content": content,
                "is_system_message": True,
                "created_at": datetime.now(timezone.utc).isoformat(),
            })
            if result.error:
                logger.warning(f"System message to squad {squad_id} was not stored: {result.error.message}")
        except Exception as e:
            logger.warning(f"System message to squad {squad_id} failed: {e}")

    def member_joined(self, squad_id: str, username: str) -> None:
        self.dispatch(squad_id, f"{username} joined the squad")

    def member_left(self, squad_id: str, username: str) -> None:
        self.dispatch(squad_id, f"{username} left the squad")

    def session_confirmed(self, squad_id: str, title: Optional[str], scheduled_at: datetime) -> None:
        label = title or "Session"
        when = scheduled_at.astimezone(timezone.utc) if scheduled_at.tzinfo else scheduled_at
        self.dispatch(squad_id, f"{label} is confirmed for {when.strftime('%Y-%m-%d %H:%M')} UTC")

    def rsvp_recorded(self, squad_id: str, username: str, title: Optional[str], response: str) -> None:
        label = RSVP_LABELS.get(response, response)
        self.dispatch(squad_id, f"{username} answered {label} for {title or 'the session'}")
