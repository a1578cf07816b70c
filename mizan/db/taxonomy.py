"""
Default category taxonomy.

Two levels: top-level categories, then children pointing at their parent's
slug. Rows are listed in display order; sort_order is the position here.
Bump TAXONOMY_VERSION whenever a row is added, removed or re-parented.
"""

from typing import NamedTuple, Optional

TAXONOMY_VERSION = 2

INCOME_COLOR = "#52C41A"


class CategorySpec(NamedTuple):
    slug: str
    name: str
    category_type: str
    color: str
    icon: str
    parent_slug: Optional[str] = None

    @property
    def level(self) -> int:
        return 0 if self.parent_slug is None else 1


_ROWS = [
    # Income
    ("cat_income_salary", "Salary", "income", INCOME_COLOR, "briefcase", None),
    ("cat_income_secondary", "Secondary income", "income", INCOME_COLOR, "trending-up", None),
    ("cat_income_salary_net", "Net salary", "income", INCOME_COLOR, "cash", "cat_income_salary"),
    ("cat_income_salary_bonus", "Bonuses / overtime", "income", INCOME_COLOR, "trophy", "cat_income_salary"),
    ("cat_income_freelance", "Freelance", "income", INCOME_COLOR, "laptop", "cat_income_secondary"),
    ("cat_income_commerce", "Trade / sales", "income", INCOME_COLOR, "storefront", "cat_income_secondary"),
    ("cat_income_commissions", "Commissions", "income", INCOME_COLOR, "trending-up", "cat_income_secondary"),
    # Monthly expenses
    ("cat_expense_housing", "Housing & bills", "expense", "#45B7D1", "home", None),
    ("cat_expense_food", "Food & groceries", "expense", "#FFA940", "cart", None),
    ("cat_expense_transport", "Transport & car", "expense", "#FA8C16", "car", None),
    ("cat_expense_health", "Health", "expense", "#FF4D4F", "medical", None),
    ("cat_expense_child", "Child", "expense", "#FF85C0", "happy", None),
    ("cat_expense_subscriptions", "Subscriptions", "expense", "#722ED1", "phone-portrait", None),
    ("cat_expense_personal", "Personal spending", "expense", "#13C2C2", "person", None),
    ("cat_expense_house", "Home", "expense", "#96CEB4", "hammer", None),
    ("cat_expense_misc", "Misc & unexpected", "expense", "#95A5A6", "gift", None),
    ("cat_expense_housing_rent", "Rent / mortgage", "expense", "#45B7D1", "home", "cat_expense_housing"),
    ("cat_expense_housing_electricity", "Electricity", "expense", "#45B7D1", "flash", "cat_expense_housing"),
    ("cat_expense_housing_water", "Water", "expense", "#45B7D1", "water", "cat_expense_housing"),
    ("cat_expense_housing_internet", "Wifi / internet", "expense", "#45B7D1", "wifi", "cat_expense_housing"),
    ("cat_expense_housing_syndic", "Building fees", "expense", "#45B7D1", "document", "cat_expense_housing"),
    ("cat_expense_food_groceries", "Grocery", "expense", "#FFA940", "basket", "cat_expense_food"),
    ("cat_expense_food_vegetables", "Vegetables / fruit", "expense", "#FFA940", "nutrition", "cat_expense_food"),
    ("cat_expense_food_meat", "Meat / fish", "expense", "#FFA940", "fish", "cat_expense_food"),
    ("cat_expense_food_cleaning", "Cleaning products", "expense", "#FFA940", "sparkles", "cat_expense_food"),
    ("cat_expense_transport_fuel", "Fuel", "expense", "#FA8C16", "speedometer", "cat_expense_transport"),
    ("cat_expense_transport_maintenance", "Maintenance", "expense", "#FA8C16", "build", "cat_expense_transport"),
    ("cat_expense_transport_insurance", "Insurance", "expense", "#FA8C16", "shield", "cat_expense_transport"),
    ("cat_expense_transport_wash", "Car wash", "expense", "#FA8C16", "water", "cat_expense_transport"),
    ("cat_expense_transport_parking", "Parking", "expense", "#FA8C16", "car-sport", "cat_expense_transport"),
    ("cat_expense_health_pharmacy", "Pharmacy", "expense", "#FF4D4F", "medkit", "cat_expense_health"),
    ("cat_expense_health_consultation", "Tests / consultation", "expense", "#FF4D4F", "medical", "cat_expense_health"),
    ("cat_expense_health_insurance", "Health insurance", "expense", "#FF4D4F", "shield", "cat_expense_health"),
    ("cat_expense_child_food", "Food", "expense", "#FF85C0", "restaurant", "cat_expense_child"),
    ("cat_expense_child_hygiene", "Hygiene", "expense", "#FF85C0", "sparkles", "cat_expense_child"),
    ("cat_expense_child_school", "School / daycare", "expense", "#FF85C0", "school", "cat_expense_child"),
    ("cat_expense_child_leisure", "Leisure", "expense", "#FF85C0", "game-controller", "cat_expense_child"),
    ("cat_expense_subscriptions_phone", "Phone", "expense", "#722ED1", "call", "cat_expense_subscriptions"),
    ("cat_expense_subscriptions_apps", "Apps", "expense", "#722ED1", "apps", "cat_expense_subscriptions"),
    ("cat_expense_subscriptions_streaming", "Streaming", "expense", "#722ED1", "tv", "cat_expense_subscriptions"),
    ("cat_expense_personal_clothes", "Clothes", "expense", "#13C2C2", "shirt", "cat_expense_personal"),
    ("cat_expense_personal_haircut", "Haircut", "expense", "#13C2C2", "cut", "cat_expense_personal"),
    ("cat_expense_personal_perfume", "Perfume", "expense", "#13C2C2", "sparkles", "cat_expense_personal"),
    ("cat_expense_personal_outings", "Outings", "expense", "#13C2C2", "walk", "cat_expense_personal"),
    ("cat_expense_house_kitchen", "Kitchen / accessories", "expense", "#96CEB4", "restaurant", "cat_expense_house"),
    ("cat_expense_house_decoration", "Decoration", "expense", "#96CEB4", "flower", "cat_expense_house"),
    ("cat_expense_house_tools", "Tools / DIY", "expense", "#96CEB4", "construct", "cat_expense_house"),
    ("cat_expense_misc_gifts", "Gifts", "expense", "#95A5A6", "gift", "cat_expense_misc"),
    ("cat_expense_misc_family_help", "Family support", "expense", "#95A5A6", "people", "cat_expense_misc"),
    ("cat_expense_misc_unexpected", "Unexpected", "expense", "#95A5A6", "warning", "cat_expense_misc"),
]

DEFAULT_CATEGORIES: list[CategorySpec] = [CategorySpec(*row) for row in _ROWS]

TAXONOMY_SIZE = len(DEFAULT_CATEGORIES)


def top_level() -> list[CategorySpec]:
    return [c for c in DEFAULT_CATEGORIES if c.parent_slug is None]


def children() -> list[CategorySpec]:
    return [c for c in DEFAULT_CATEGORIES if c.parent_slug is not None]


def sort_order(spec: CategorySpec) -> int:
    return DEFAULT_CATEGORIES.index(spec) + 1
