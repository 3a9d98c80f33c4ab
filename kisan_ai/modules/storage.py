# in kisan_ai/modules/storage.py

import itertools
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..errors import ConflictError
from ..models import Activity, DiseaseScan, User

logger = logging.getLogger(__name__)


class MemStorage:
    """
    In-memory store for users, disease scans and activities.

    Each collection has its own id counter; ids are never reused. No
    referential checks are made: scans and activities keep whatever user id
    the caller passed in.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._lock = threading.Lock()
        self._users: Dict[str, User] = {}
        self._disease_scans: Dict[int, DiseaseScan] = {}
        self._activities: Dict[int, Activity] = {}
        self._user_ids = itertools.count(1)
        self._scan_ids = itertools.count(1)
        self._activity_ids = itertools.count(1)

    # --- Users ---

    def get_user(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            users = list(self._users.values())
        return next((u for u in users if u.email == email), None)

    def create_user(self, user_id: Optional[str] = None, **fields: Any) -> User:
        """Register a user; a caller-supplied id that is already taken raises ConflictError."""
        now = self._clock()
        with self._lock:
            if user_id:
                if user_id in self._users:
                    raise ConflictError(f"User {user_id} already exists")
            else:
                # generated ids skip any taken by caller-supplied ones
                user_id = str(next(self._user_ids))
                while user_id in self._users:
                    user_id = str(next(self._user_ids))
            user = User(
                id=user_id,
                email=fields.get("email") or None,
                first_name=fields.get("first_name") or None,
                last_name=fields.get("last_name") or None,
                profile_image_url=fields.get("profile_image_url") or None,
                location=fields.get("location") or None,
                language=fields.get("language") or "en",
                created_at=now,
                updated_at=now,
            )
            self._users[user.id] = user
        logger.info(f"Created user {user.id}")
        return user

    # --- Disease scans ---

    def create_disease_scan(self, user_id: str, image_data: str, diagnosis: Optional[str] = None,
                            confidence: Optional[int] = None, remedies: Optional[List[str]] = None) -> DiseaseScan:
        with self._lock:
            scan = DiseaseScan(
                id=next(self._scan_ids),
                user_id=user_id,
                image_data=image_data,
                diagnosis=diagnosis,
                confidence=confidence,
                remedies=list(remedies or []),
                scan_date=self._clock(),
            )
            self._disease_scans[scan.id] = scan
        return scan

    def disease_scans_for_user(self, user_id: str) -> List[DiseaseScan]:
        with self._lock:
            return [s for s in self._disease_scans.values() if s.user_id == user_id]

    # --- Activities ---

    def create_activity(self, user_id: str, type: str, title: str,
                        description: Optional[str] = None, icon: Optional[str] = None) -> Activity:
        with self._lock:
            activity = Activity(
                id=next(self._activity_ids),
                user_id=user_id,
                type=type,
                title=title,
                description=description,
                icon=icon,
                created_at=self._clock(),
            )
            self._activities[activity.id] = activity
        return activity

    def activities_for_user(self, user_id: str) -> List[Activity]:
        """Newest first; equal timestamps keep insertion order."""
        with self._lock:
            rows = [a for a in self._activities.values() if a.user_id == user_id]
        return sorted(rows, key=lambda a: a.created_at, reverse=True)

    def get_service_status(self) -> Dict[str, Any]:
        return {
            "users": len(self._users),
            "disease_scans": len(self._disease_scans),
            "activities": len(self._activities),
        }
