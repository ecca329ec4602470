"""Static catalog of themes and voice styles that can be unlocked with coins."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional


class ItemType(str, Enum):
    THEME = "theme"
    VOICE = "voice"


class ThemeId(str, Enum):
    DEFAULT = "default"
    EYE_CARE = "eye-care"
    DARK = "dark"
    PINK = "pink"
    OCEAN = "ocean"
    FOREST = "forest"


class VoiceId(str, Enum):
    GENTLE = "gentle"
    STRICT = "strict"
    ENERGETIC = "energetic"
    CALM = "calm"
    MOTIVATIONAL = "motivational"


@dataclass(frozen=True)
class ShopItem:
    id: str
    name: str
    description: str
    price: int
    type: ItemType

    @property
    def is_free(self) -> bool:
        return self.price == 0


THEMES: Dict[str, ShopItem] = {
    item.id: item for item in (
        ShopItem(ThemeId.DEFAULT.value, "Default", "Clean, simple default colours", 0, ItemType.THEME),
        ShopItem(ThemeId.EYE_CARE.value, "Eye Care", "Low blue-light palette for long study sessions", 0, ItemType.THEME),
        ShopItem(ThemeId.DARK.value, "Dark", "Easy-on-the-eyes dark mode", 200, ItemType.THEME),
        ShopItem(ThemeId.PINK.value, "Pink", "Soft pink tones", 300, ItemType.THEME),
        ShopItem(ThemeId.OCEAN.value, "Ocean", "Fresh ocean blues", 250, ItemType.THEME),
        ShopItem(ThemeId.FOREST.value, "Forest", "Natural greens", 280, ItemType.THEME),
    )
}

VOICES: Dict[str, ShopItem] = {
    item.id: item for item in (
        ShopItem(VoiceId.GENTLE.value, "Gentle Senior", "Warm, encouraging reminders", 0, ItemType.VOICE),
        ShopItem(VoiceId.STRICT.value, "Strict Teacher", "Firm, no-nonsense reminders", 0, ItemType.VOICE),
        ShopItem(VoiceId.ENERGETIC.value, "Energetic Coach", "Lively, high-energy motivation", 150, ItemType.VOICE),
        ShopItem(VoiceId.CALM.value, "Calm Mentor", "Slow, soothing guidance", 180, ItemType.VOICE),
        ShopItem(VoiceId.MOTIVATIONAL.value, "Motivational Speaker", "Inspiring, speech-style encouragement", 200, ItemType.VOICE),
    )
}

DEFAULT_THEME_ID = ThemeId.DEFAULT.value
DEFAULT_VOICE_ID = VoiceId.GENTLE.value

# Always unlocked, even if the stored set says otherwise
FREE_ITEM_IDS: FrozenSet[str] = frozenset(
    item.id for item in list(THEMES.values()) + list(VOICES.values()) if item.is_free
)


def get_item(item_id: str) -> Optional[ShopItem]:
    """Look up a theme or voice by id."""
    return THEMES.get(item_id) or VOICES.get(item_id)
