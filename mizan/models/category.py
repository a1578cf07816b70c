from dataclasses import dataclass
from enum import Enum
from typing import Optional

from mizan.config import DEFAULT_USER_ID


class CategoryType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


@dataclass
class Category:
    """
    A node of the two-level category taxonomy.

    Transactions reference categories by slug, which survives a forced
    reinstall even though the integer ids are reassigned.
    """

    id: Optional[int]
    slug: str
    name: str
    category_type: CategoryType
    color: str
    icon: str
    level: int = 0
    sort_order: int = 0
    parent_id: Optional[int] = None
    user_id: str = DEFAULT_USER_ID
    is_active: bool = True

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "type": self.category_type.value,
            "color": self.color,
            "icon": self.icon,
            "level": self.level,
            "sort_order": self.sort_order,
            "parent_id": self.parent_id,
            "user_id": self.user_id,
            "is_active": self.is_active,
        }

    @classmethod
    def from_row(cls, row) -> "Category":
        """Create a Category from a database row."""
        return cls(
            id=row["id"],
            slug=row["slug"],
            name=row["name"],
            category_type=CategoryType(row["type"]),
            color=row["color"],
            icon=row["icon"],
            level=row["level"],
            sort_order=row["sort_order"],
            parent_id=row["parent_id"],
            user_id=row["user_id"],
            is_active=bool(row["is_active"]),
        )
