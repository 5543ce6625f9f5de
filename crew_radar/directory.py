"""
Snapshot of the user directory feed.
"""
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
import logging

from .models.presence import UserPresence

# Configure logging
logger = logging.getLogger(__name__)


class CrewDirectory:
    """Read-only view of the latest directory snapshot, replaced wholesale on arrival."""
    def __init__(self, users: Optional[Iterable[UserPresence]] = None) -> None:
        self._users: Dict[str, UserPresence] = {u.id: u for u in (users or [])}
        self.received_at: Optional[datetime] = None
        logger.info(f"Initialized directory with {len(self._users)} users")

    # ---------- Lookup ----------
    def __getitem__(self, user_id: str) -> UserPresence:
        try:
            return self._users[user_id]
        except KeyError:
            logger.error(f"User {user_id} not found in directory")
            raise

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._users

    def __len__(self) -> int:
        return len(self._users)

    def get_all(self) -> List[UserPresence]:
        """All users, in feed order."""
        return list(self._users.values())

    def get_online(self, now: Optional[datetime] = None) -> List[UserPresence]:
        """Users with a fresh device fix."""
        now = now or datetime.now(timezone.utc)
        return [u for u in self._users.values() if u.is_online(now)]

    # ---------- Snapshot replacement ----------
    def replace_from_records(self, records: Iterable[dict], now: Optional[datetime] = None) -> int:
        """
        Replace the snapshot with the users built from ``records``.

        Args:
            records: Iterable of feed rows (dicts)

        Returns:
            Number of users in the new snapshot

        Note:
            Invalid records are logged and skipped; they never abort the load.
            Later records for an id already seen win.
        """
        users: Dict[str, UserPresence] = {}
        bad_records: defaultdict[str, list] = defaultdict(list)

        for record in records:
            if not isinstance(record, dict):
                logger.warning(f"Skipping non-dictionary record: {record!r}")
                continue
            try:
                user = UserPresence.from_record(record)
            except ValueError as e:
                key = str(record.get("id") or record.get("user_id") or "<no id>")
                bad_records[key].append(record)
                logger.warning(f"Skipping directory record: {e}")
                continue
            users[user.id] = user

        self._users = users
        self.received_at = now or datetime.now(timezone.utc)
        if bad_records:
            logger.warning(f"Skipped records for users: {list(bad_records.keys())}")
        logger.info(f"Directory snapshot replaced with {len(users)} users")
        return len(users)

    # ---------- Status Reporting ----------
    def get_status_report(self, now: Optional[datetime] = None) -> dict:
        """Summary of the current snapshot."""
        now = now or datetime.now(timezone.utc)
        online = self.get_online(now)
        return {
            "total_users": len(self._users),
            "online": len(online),
            "offline": len(self._users) - len(online),
            "received_at": self.received_at.isoformat() if self.received_at else None,
            "users": {
                user_id: {
                    "status": "online" if u.is_online(now) else "offline",
                    "user_type": u.user_type.value,
                    "rank": u.rank,
                    "last_fix": u.location_updated_at.isoformat() if u.location_updated_at else None,
                }
                for user_id, u in self._users.items()
            },
        }
