from __future__ import annotations

import html
import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import Message, ReplyKeyboardRemove

from storefront.bot.keyboards import categories_kb, main_kb
from storefront.bot.states import MenuItemAdd
from storefront.config import settings
from storefront.db.sqlite import init_db, list_orders
from storefront.services.menu import create_menu_item, delete_menu_item, get_menu_items
from storefront.utils.formatters import money

log = logging.getLogger(__name__)

router = Router()

CANCEL_HINT = "\nCancel: /cancel"


def _is_admin(message: Message) -> bool:
    try:
        return int(message.from_user.id) == int(settings.admin_id)
    except Exception:
        return False


def _money(v: float) -> str:
    return money(v, settings.currency, settings.decimals)


def _format_errors(errors: dict) -> str:
    lines = ["❌ Menu item not saved:"]
    for field, msgs in errors.items():
        for m in msgs:
            lines.append(f"• {field}: {html.escape(m)}")
    return "\n".join(lines)


async def _cancelled(message: Message, state: FSMContext) -> bool:
    if (message.text or "").strip() == "/cancel":
        await state.clear()
        await message.answer("❎ Cancelled.", reply_markup=ReplyKeyboardRemove())
        return True
    return False


@router.message(Command("start"))
async def cmd_start(message: Message):
    if not _is_admin(message):
        return
    init_db(settings.db_path)
    await message.answer("✅ Storefront admin console", reply_markup=main_kb())


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    await state.clear()
    await message.answer("❎ Cancelled. Commands are available again.", reply_markup=ReplyKeyboardRemove())


@router.message(Command("help"))
async def cmd_help(message: Message):
    if not _is_admin(message):
        return

    text = (
        "<b>Storefront admin — commands</b>\n\n"
        "/start — start\n"
        "/cancel — cancel input\n"
        "/help — this help\n\n"
        "<b>Menu</b>\n"
        "/menu — list menu items\n"
        "/add — add a menu item step by step\n"
        "/delete ID — delete a menu item\n\n"
        "<b>Orders</b>\n"
        "/orders — ten most recent orders\n"
    )
    await message.answer(text)


@router.message(Command("menu"))
async def cmd_menu(message: Message):
    if not _is_admin(message):
        return
    rows = get_menu_items(settings.db_path)
    if not rows:
        await message.answer("The menu is empty. Add an item: /add")
        return
    lines = ["<b>Menu:</b>"]
    for r in rows:
        lines.append(
            f"• {html.escape(r['name'])} — {html.escape(r['category'])} | {_money(r['price'])}\n"
            f"  <code>{r['id']}</code>"
        )
    await message.answer("\n".join(lines))


@router.message(Command("delete"))
async def cmd_delete(message: Message):
    if not _is_admin(message):
        return
    parts = (message.text or "").split(maxsplit=1)
    if len(parts) < 2 or not parts[1].strip():
        await message.answer("Usage: /delete ID (see /menu)")
        return
    result = delete_menu_item(settings.db_path, parts[1].strip())
    if result.success:
        await message.answer(f"✅ {result.message}")
    else:
        await message.answer(_format_errors(result.errors))


@router.message(Command("orders"))
async def cmd_orders(message: Message):
    if not _is_admin(message):
        return
    orders = list_orders(settings.db_path, limit=10)
    if not orders:
        await message.answer("No orders yet.")
        return
    lines = ["<b>Recent orders:</b>"]
    for o in orders:
        qty = sum(int(it["quantity"]) for it in o["items"])
        lines.append(
            f"• #{o['id']} {o['created_at'][:16].replace('T', ' ')} — "
            f"{_money(o['amount'])}, {qty} item(s), user {html.escape(o['user_id'])}"
        )
    await message.answer("\n".join(lines))


# ---------------- /add wizard ----------------

@router.message(Command("add"))
async def cmd_add(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    await state.clear()
    await state.set_state(MenuItemAdd.waiting_name)
    await message.answer(
        "Adding a menu item.\n\n1/5) Enter the NAME" + CANCEL_HINT,
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(MenuItemAdd.waiting_name)
async def add_name(message: Message, state: FSMContext):
    if not _is_admin(message) or await _cancelled(message, state):
        return
    name = (message.text or "").strip()
    if not name or name.startswith("/"):
        await message.answer("Enter the name as text." + CANCEL_HINT)
        return
    await state.update_data(name=name)
    await state.set_state(MenuItemAdd.waiting_description)
    await message.answer("2/5) Enter the DESCRIPTION" + CANCEL_HINT)


@router.message(MenuItemAdd.waiting_description)
async def add_description(message: Message, state: FSMContext):
    if not _is_admin(message) or await _cancelled(message, state):
        return
    description = (message.text or "").strip()
    if not description:
        await message.answer("Enter the description as text." + CANCEL_HINT)
        return
    await state.update_data(description=description)
    await state.set_state(MenuItemAdd.waiting_category)
    await message.answer("3/5) Choose the CATEGORY" + CANCEL_HINT, reply_markup=categories_kb())


@router.message(MenuItemAdd.waiting_category)
async def add_category(message: Message, state: FSMContext):
    if not _is_admin(message) or await _cancelled(message, state):
        return
    await state.update_data(category=(message.text or "").strip())
    await state.set_state(MenuItemAdd.waiting_price)
    await message.answer("4/5) Enter the PRICE, e.g. 12.50" + CANCEL_HINT, reply_markup=ReplyKeyboardRemove())


@router.message(MenuItemAdd.waiting_price)
async def add_price(message: Message, state: FSMContext):
    if not _is_admin(message) or await _cancelled(message, state):
        return
    await state.update_data(price=(message.text or "").strip())
    await state.set_state(MenuItemAdd.waiting_image)
    await message.answer("5/5) Send the IMAGE URL, or '-' to skip" + CANCEL_HINT)


@router.message(MenuItemAdd.waiting_image)
async def add_image(message: Message, state: FSMContext):
    if not _is_admin(message) or await _cancelled(message, state):
        return
    image = (message.text or "").strip()
    data = await state.get_data()
    data["image"] = "" if image == "-" else image

    result = create_menu_item(settings.db_path, data)
    await state.clear()
    if not result.success:
        await message.answer(_format_errors(result.errors) + "\n\nStart again: /add")
        return
    item = result.data
    await message.answer(
        f"✅ {result.message}\n{html.escape(item['name'])} — {_money(item['price'])}\n<code>{item['id']}</code>",
        reply_markup=main_kb(),
    )
