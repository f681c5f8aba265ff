# aspbot/keyboards/main.py
from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

BTN_SIGN_IN = "▶️ Sign in"
BTN_SIGN_OUT = "⏹ Sign out"
BTN_STATUS = "⏱ Status"
BTN_LEADERBOARD = "🏆 Leaderboard"
BTN_HOURS = "🕖 ASP hours"


def main_menu_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BTN_SIGN_IN), KeyboardButton(text=BTN_SIGN_OUT)],
            [KeyboardButton(text=BTN_STATUS), KeyboardButton(text=BTN_LEADERBOARD)],
            [KeyboardButton(text=BTN_HOURS)],
        ],
        resize_keyboard=True,
        input_field_placeholder="Choose an action…",
        selective=False,
        one_time_keyboard=False,
    )
