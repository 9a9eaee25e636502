# card_studio/domain/catalog.py
from typing import List, Sequence, TypeVar

from card_studio.domain.errors import UnknownCatalogEntry
from card_studio.domain.models import CardSize, Layout, Theme

DEFAULT_MESSAGE = (
    "Wishing you a year filled with confetti moments, brave dreams, and extra dessert."
)

THEMES: List[Theme] = [
    Theme(
        id="sunrise",
        name="Sunrise Parade",
        gradient=[("#ffd6a5", 0.0), ("#ffcad4", 0.4), ("#cdb4db", 1.0)],
        angle=135,
        accent="#ff6b6b",
        shadow="0 30px 70px rgba(255, 155, 141, 0.45)",
    ),
    Theme(
        id="sorbet",
        name="Sorbet Pop",
        gradient=[("#b8f2e6", 0.0), ("#fef6e4", 0.45), ("#f7d9d9", 1.0)],
        angle=130,
        accent="#2d6a4f",
        shadow="0 28px 60px rgba(101, 200, 170, 0.4)",
    ),
    Theme(
        id="night",
        name="Berry Night",
        gradient=[("#2f2244", 0.0), ("#5f0f40", 0.4), ("#f04e98", 1.0)],
        angle=135,
        accent="#ffe066",
        shadow="0 30px 70px rgba(40, 10, 50, 0.6)",
    ),
]

LAYOUTS: List[Layout] = [
    Layout(id="duo", name="Split Duo", description="Two photos stacked with a message panel."),
    Layout(id="focus", name="Hero Focus", description="One bold photo with a smaller cameo."),
]

CARD_SIZES: List[CardSize] = [
    CardSize(id="standard", name="Standard", description="Balanced preview size.",
             preview_width=520, export_scale=2),
    CardSize(id="large", name="Large", description="Bigger preview + sharper export.",
             preview_width=620, export_scale=2.5),
    CardSize(id="xlarge", name="Extra", description="Largest preview + ultra export.",
             preview_width=720, export_scale=3),
]

T = TypeVar("T", Theme, Layout, CardSize)


def _find(entries: Sequence[T], entry_id: str) -> T:
    """Lookup used while rendering: unknown ids fall back to the first entry."""
    return next((e for e in entries if e.id == entry_id), entries[0])


def _require(entries: Sequence[T], entry_id: str, kind: str) -> str:
    if not any(e.id == entry_id for e in entries):
        raise UnknownCatalogEntry(f"Unknown {kind} '{entry_id}'.")
    return entry_id


def get_theme(theme_id: str) -> Theme:
    return _find(THEMES, theme_id)


def get_layout(layout_id: str) -> Layout:
    return _find(LAYOUTS, layout_id)


def get_card_size(card_size_id: str) -> CardSize:
    return _find(CARD_SIZES, card_size_id)


def require_theme(theme_id: str) -> str:
    return _require(THEMES, theme_id, "theme")


def require_layout(layout_id: str) -> str:
    return _require(LAYOUTS, layout_id, "layout")


def require_card_size(card_size_id: str) -> str:
    return _require(CARD_SIZES, card_size_id, "card size")
