# aspbot/keyboards/cohorts.py
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup


def cohort_tabs_kb(cohorts: tuple[str, ...], selected: str | None = None) -> InlineKeyboardMarkup:
    """Leaderboard tabs: All + one per cohort."""
    current = selected or "all"
    buttons = []
    for tab in ("all", *cohorts):
        label = "All" if tab == "all" else tab
        if tab == current:
            label = f"• {label} •"
        buttons.append(InlineKeyboardButton(text=label, callback_data=f"lb:{tab}"))
    return InlineKeyboardMarkup(inline_keyboard=[buttons])
