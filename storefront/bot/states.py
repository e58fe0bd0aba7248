from aiogram.fsm.state import State, StatesGroup


class MenuItemAdd(StatesGroup):
    waiting_name = State()
    waiting_description = State()
    waiting_category = State()
    waiting_price = State()
    waiting_image = State()
