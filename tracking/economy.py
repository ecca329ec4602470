"""
Coin balance, unlocked items, active preferences and the recent-sessions log.

All five values persist through a SessionStore. Every logical event
(purchase, session close) is written with a single set_many call so the
balance and the log or unlock list never diverge on a crash.
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Set

import config
from storage.catalog import (
    DEFAULT_THEME_ID,
    DEFAULT_VOICE_ID,
    FREE_ITEM_IDS,
    THEMES,
    VOICES,
    get_item,
)
from storage.store import (
    KEY_ACTIVE_THEME,
    KEY_ACTIVE_VOICE,
    KEY_RECENT_SESSIONS,
    KEY_TOTAL_COINS,
    KEY_UNLOCKED_ITEMS,
    SessionStore,
)
from tracking.models import StoredSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PurchaseResult:
    success: bool
    error_type: Optional[str] = None  # unknown_item, already_owned, insufficient_coins
    message: str = ""


class Economy:
    """
    In-memory view of the persisted economy state.

    Invariant: total_coins never goes negative. A purchase that would
    overdraw is rejected outright.
    """

    def __init__(self, store: SessionStore):
        self.store = store
        self.total_coins: int = 0
        self.unlocked_item_ids: Set[str] = set(FREE_ITEM_IDS)
        self.active_theme_id: str = DEFAULT_THEME_ID
        self.active_voice_id: str = DEFAULT_VOICE_ID
        self.recent_sessions: List[StoredSession] = []

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """
        Read every key, validating shapes. Corrupt entries are discarded
        with a warning; loading never fails.
        """
        self.recent_sessions = self._load_sessions()
        self.total_coins = self._load_coins()
        self.unlocked_item_ids = self._load_unlocked()

        theme_raw = self.store.get(KEY_ACTIVE_THEME)
        if theme_raw in THEMES:
            self.active_theme_id = theme_raw
        else:
            if theme_raw is not None:
                logger.warning(f"Unknown stored theme id {theme_raw!r}, using default")
            self.active_theme_id = DEFAULT_THEME_ID

        voice_raw = self.store.get(KEY_ACTIVE_VOICE)
        if voice_raw in VOICES:
            self.active_voice_id = voice_raw
        else:
            if voice_raw is not None:
                logger.warning(f"Unknown stored voice id {voice_raw!r}, using default")
            self.active_voice_id = DEFAULT_VOICE_ID

        logger.debug(
            f"Loaded economy: {self.total_coins} coins, {len(self.unlocked_item_ids)} items, "
            f"{len(self.recent_sessions)} sessions"
        )

    def _load_sessions(self) -> List[StoredSession]:
        raw = self.store.get(KEY_RECENT_SESSIONS)
        if raw is None:
            return []
        try:
            entries = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Discarding corrupt session log: {e}")
            return []
        if not isinstance(entries, list):
            logger.warning("Discarding session log that is not a list")
            return []

        sessions = []
        for entry in entries:
            try:
                sessions.append(StoredSession.from_dict(entry))
            except ValueError as e:
                logger.warning(f"Skipping malformed stored session: {e}")
        return sessions[:config.MAX_STORED_SESSIONS]

    def _load_coins(self) -> int:
        raw = self.store.get(KEY_TOTAL_COINS)
        if raw is None:
            return 0
        try:
            coins = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding corrupt coin balance: {raw!r}")
            return 0
        # bool is an int subclass; reject it explicitly
        if isinstance(coins, bool) or not isinstance(coins, (int, float)) or coins < 0:
            logger.warning(f"Discarding invalid coin balance: {raw!r}")
            return 0
        return int(coins)

    def _load_unlocked(self) -> Set[str]:
        unlocked = set(FREE_ITEM_IDS)
        raw = self.store.get(KEY_UNLOCKED_ITEMS)
        if raw is None:
            return unlocked
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt unlocked item list")
            return unlocked
        if not isinstance(ids, list):
            logger.warning("Discarding unlocked item list that is not a list")
            return unlocked

        for item_id in ids:
            if isinstance(item_id, str) and get_item(item_id) is not None:
                unlocked.add(item_id)
            else:
                logger.warning(f"Ignoring unknown unlocked item id {item_id!r}")
        return unlocked

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def purchase(self, item_id: str) -> PurchaseResult:
        """
        Unlock a catalog item by spending coins.

        Returns:
            PurchaseResult; state is untouched unless success is True.
        """
        item = get_item(item_id)
        if item is None:
            return PurchaseResult(False, "unknown_item", f"No such item: {item_id}")

        if item_id in self.unlocked_item_ids:
            return PurchaseResult(False, "already_owned", f"{item.name} is already unlocked")

        if item.price > self.total_coins:
            logger.info(f"Purchase of {item_id} rejected: needs {item.price}, have {self.total_coins}")
            return PurchaseResult(
                False,
                "insufficient_coins",
                f"Not enough coins! Need {item.price}, you have {self.total_coins}.",
            )

        new_total = self.total_coins - item.price
        new_unlocked = self.unlocked_item_ids | {item_id}
        self.store.set_many({
            KEY_TOTAL_COINS: json.dumps(new_total),
            KEY_UNLOCKED_ITEMS: json.dumps(sorted(new_unlocked)),
        })
        self.total_coins = new_total
        self.unlocked_item_ids = new_unlocked

        logger.info(f"Purchased {item_id} for {item.price} coins ({new_total} left)")
        return PurchaseResult(True, message=f"Unlocked {item.name}")

    def apply_theme(self, theme_id: str) -> bool:
        """Make an unlocked theme active. Returns False if unknown or locked."""
        if theme_id not in THEMES or theme_id not in self.unlocked_item_ids:
            logger.warning(f"Cannot apply theme {theme_id!r}: unknown or locked")
            return False
        self.store.set(KEY_ACTIVE_THEME, theme_id)
        self.active_theme_id = theme_id
        return True

    def apply_voice(self, voice_id: str) -> bool:
        """Make an unlocked voice style active. Returns False if unknown or locked."""
        if voice_id not in VOICES or voice_id not in self.unlocked_item_ids:
            logger.warning(f"Cannot apply voice {voice_id!r}: unknown or locked")
            return False
        self.store.set(KEY_ACTIVE_VOICE, voice_id)
        self.active_voice_id = voice_id
        return True

    def record_session(self, stored: StoredSession, earned_coins: int) -> None:
        """
        Credit a session reward and prepend it to the log (newest first,
        capped at MAX_STORED_SESSIONS), as one store write.
        """
        if earned_coins < 0:
            raise ValueError("earned_coins cannot be negative")

        new_total = self.total_coins + earned_coins
        new_sessions = [stored] + self.recent_sessions
        new_sessions = new_sessions[:config.MAX_STORED_SESSIONS]

        self.store.set_many({
            KEY_TOTAL_COINS: json.dumps(new_total),
            KEY_RECENT_SESSIONS: json.dumps([s.to_dict() for s in new_sessions], ensure_ascii=False),
        })
        self.total_coins = new_total
        self.recent_sessions = new_sessions

        logger.info(f"Recorded session {stored.id}: +{earned_coins} coins ({new_total} total)")

    def clear_sessions(self) -> None:
        """Forget the recent-sessions log. Coins are kept."""
        self.store.remove(KEY_RECENT_SESSIONS)
        self.recent_sessions = []
