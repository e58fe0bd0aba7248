from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from storefront.constants import CATEGORIES


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/help"), KeyboardButton(text="/menu")],
            [KeyboardButton(text="/add"), KeyboardButton(text="/orders")],
        ],
        resize_keyboard=True,
    )


def categories_kb() -> ReplyKeyboardMarkup:
    rows = [
        [KeyboardButton(text=c) for c in CATEGORIES[i:i + 3]]
        for i in range(0, len(CATEGORIES), 3)
    ]
    rows.append([KeyboardButton(text="/cancel")])
    return ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True, one_time_keyboard=True)
