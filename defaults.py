from __future__ import annotations

from schemas import Category, Pizza, SiteSettings, SiteSpecial

DEFAULT_LOGO = "https://i.ibb.co/3ykCjFz/p2p-logo.png"

DEFAULT_SETTINGS = SiteSettings(
    logo=DEFAULT_LOGO,
    phone="+380 63 700 69 69",
    special=SiteSpecial(
        title="FRESH. HOT. YOURS.",
        description="Order the best pizza in town for delivery or pick it up in 8 minutes!",
        image="https://images.unsplash.com/photo-1513104890138-7c749659a591?auto=format&fit=crop&q=80&w=2000",
        badge="P2PIZZA SPECIAL",
    ),
)

DEFAULT_MENU = [
    Pizza(
        id="margherita",
        name="Margherita",
        description="Tomato sauce, mozzarella, basil",
        price=150,
        category=Category.PIZZA,
    ),
    Pizza(
        id="pepperoni",
        name="Pepperoni",
        description="Tomato sauce, mozzarella, spicy pepperoni",
        price=200,
        category=Category.PIZZA,
        is_promo=True,
    ),
    Pizza(
        id="four-cheese",
        name="Four Cheese",
        description="Mozzarella, gorgonzola, parmesan, cheddar",
        price=220,
        category=Category.PIZZA,
        is_new=True,
    ),
    Pizza(
        id="lemonade",
        name="House Lemonade",
        description="0.5 l",
        price=60,
        category=Category.DRINKS,
    ),
    Pizza(
        id="party-box",
        name="Party Box",
        description="Three pizzas and two drinks",
        price=590,
        category=Category.BOX,
    ),
]


def default_settings() -> SiteSettings:
    return DEFAULT_SETTINGS.model_copy(deep=True)


def default_menu() -> list[Pizza]:
    return [p.model_copy() for p in DEFAULT_MENU]
