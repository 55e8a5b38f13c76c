"""
Persistent stores for the draft, sender profile and letter history.

Every store is best effort: reads fall back to defaults and writes log a
warning instead of raising, so losing local storage never breaks a session.
"""

from datetime import datetime
from typing import List, Optional
import logging

from ..errors import PersistenceFailure
from ..models import Draft, HistoryItem, Profile, parse_language, parse_tone
from .data_manager import LocalDataManager

DRAFT_STATE_KEY = "draft_v1"
PROFILE_STATE_KEY = "profile_v1"
DEFAULT_HISTORY_LIMIT = 50


class DraftStore:
    """Autosaved working draft."""

    def __init__(self, data_manager: LocalDataManager, state_key: str = DRAFT_STATE_KEY):
        self.data_manager = data_manager
        self.state_key = state_key
        self.logger = logging.getLogger("brevskriver.stores.draft")

    def load(self) -> Draft:
        try:
            stored = self.data_manager.get_state(self.state_key)
            if not isinstance(stored, dict):
                return Draft()
            return Draft.from_dict(stored)
        except (PersistenceFailure, TypeError, ValueError) as e:
            self.logger.warning(f"Falling back to an empty draft: {str(e)}")
            return Draft()

    def save(self, draft: Draft) -> bool:
        """
        Persist the draft unless it is entirely empty.

        An empty draft is never written so a blank session cannot overwrite
        the previous session's work.

        Returns:
            True if the draft was written
        """
        if draft.is_empty():
            self.logger.debug("Skipping save of empty draft")
            return False

        draft.saved_at = datetime.now().isoformat(timespec="seconds")
        try:
            self.data_manager.set_state(self.state_key, draft.to_dict())
            return True
        except PersistenceFailure as e:
            self.logger.warning(f"Draft autosave failed: {str(e)}")
            return False

    def remove(self) -> None:
        try:
            self.data_manager.delete_state(self.state_key)
        except PersistenceFailure as e:
            self.logger.warning(f"Failed to remove stored draft: {str(e)}")


class ProfileStore:
    """Sender profile, saved only on explicit request."""

    def __init__(self, data_manager: LocalDataManager, state_key: str = PROFILE_STATE_KEY):
        self.data_manager = data_manager
        self.state_key = state_key
        self.logger = logging.getLogger("brevskriver.stores.profile")

    def load(self) -> Profile:
        try:
            stored = self.data_manager.get_state(self.state_key)
            if not isinstance(stored, dict):
                return Profile()
            return Profile.from_dict(stored)
        except (PersistenceFailure, TypeError) as e:
            self.logger.warning(f"Falling back to an empty profile: {str(e)}")
            return Profile()

    def save(self, profile: Profile) -> bool:
        try:
            self.data_manager.set_state(self.state_key, profile.to_dict())
            self.logger.info("Profile saved")
            return True
        except PersistenceFailure as e:
            self.logger.warning(f"Profile save failed: {str(e)}")
            return False

    def remove(self) -> None:
        try:
            self.data_manager.delete_state(self.state_key)
        except PersistenceFailure as e:
            self.logger.warning(f"Failed to remove stored profile: {str(e)}")


class HistoryStore:
    """Capped log of generated letters, most recent first."""

    def __init__(self, data_manager: LocalDataManager, limit: int = DEFAULT_HISTORY_LIMIT):
        self.data_manager = data_manager
        self.limit = max(int(limit), 1)
        self.logger = logging.getLogger("brevskriver.stores.history")

    def load(self) -> List[HistoryItem]:
        try:
            rows = self.data_manager.list_history_rows()
        except PersistenceFailure as e:
            self.logger.warning(f"Falling back to empty history: {str(e)}")
            return []

        items = []
        for row in rows:
            item = self._row_to_item(row)
            if item is not None:
                items.append(item)
        return items

    def add(self, item: HistoryItem) -> bool:
        row = item.to_dict()
        row["history_id"] = row.pop("id")
        try:
            evicted = self.data_manager.insert_history_item(row, limit=self.limit)
        except PersistenceFailure as e:
            self.logger.warning(f"Failed to save letter to history: {str(e)}")
            return False

        if evicted:
            self.logger.info(f"History limit {self.limit} reached, evicted {evicted} oldest item(s)")
        return True

    def get(self, history_id: str) -> Optional[HistoryItem]:
        try:
            row = self.data_manager.get_history_row(history_id)
        except PersistenceFailure as e:
            self.logger.warning(f"Failed to read history item {history_id}: {str(e)}")
            return None
        return self._row_to_item(row) if row else None

    def delete(self, history_id: str) -> bool:
        try:
            return self.data_manager.delete_history_row(history_id)
        except PersistenceFailure as e:
            self.logger.warning(f"Failed to delete history item {history_id}: {str(e)}")
            return False

    def clear(self) -> None:
        try:
            self.data_manager.clear_history_rows()
        except PersistenceFailure as e:
            self.logger.warning(f"Failed to clear history: {str(e)}")

    def _row_to_item(self, row: dict) -> Optional[HistoryItem]:
        try:
            return HistoryItem(
                id=str(row["history_id"]),
                input_language=parse_language(row.get("input_language")),
                tone=parse_tone(row.get("tone")),
                scenario=str(row.get("scenario") or "custom"),
                subject=str(row.get("subject") or ""),
                recipient=str(row.get("recipient") or ""),
                body=str(row.get("body") or ""),
                output=str(row.get("output") or ""),
                created_at=str(row.get("created_at") or ""),
            )
        except (KeyError, TypeError) as e:
            self.logger.warning(f"Skipping malformed history row: {str(e)}")
            return None
