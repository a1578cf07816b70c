"""
Category repository and default taxonomy installer.

Handles:
- Installing the default two-level taxonomy for an owner
- Forced destructive reinstall with verification
- Category lookups by slug
"""

import logging
from typing import Optional

from mizan.config import DEFAULT_USER_ID
from mizan.errors import IntegrityViolation
from mizan.models import Category, CategoryType

from .base import BaseRepository
from .taxonomy import TAXONOMY_SIZE, TAXONOMY_VERSION, children, sort_order, top_level

logger = logging.getLogger(__name__)


class CategoryRepository(BaseRepository):
    """Repository for the category taxonomy."""

    # =========================================================================
    # Installation
    # =========================================================================

    def initialize_default_categories(
        self, user_id: str = DEFAULT_USER_ID, force: bool = False
    ) -> int:
        """
        Install the default taxonomy for an owner.

        Without force this is a no-op as soon as the owner has any category.
        With force every category row is deleted and the id sequence reset
        before the taxonomy is inserted again, all in one SQL transaction.
        Transactions keep referring to categories by slug, so their links
        survive the reinstall.

        Args:
            user_id: Owner of the categories
            force: Reinstall even if categories exist

        Returns:
            Number of categories inserted (0 when nothing was done)

        Raises:
            IntegrityViolation: If the installed count does not match the taxonomy
        """
        if not user_id:
            raise ValueError(f"Invalid user_id: {user_id}")

        if not force and self.count(user_id) > 0:
            logger.debug(f"Categories already installed for user {user_id}")
            return 0

        with self.db.transaction() as conn:
            if force:
                deleted = conn.execute("DELETE FROM categories").rowcount
                if self.db.table_exists("sqlite_sequence"):
                    conn.execute("DELETE FROM sqlite_sequence WHERE name = 'categories'")
                logger.info(f"Removed {deleted} categories before reinstall")

            ids_by_slug: dict[str, int] = {}
            for seed in top_level() + children():
                parent_id = ids_by_slug[seed.parent_slug] if seed.parent_slug else None
                cursor = conn.execute(
                    """
                    INSERT INTO categories
                        (slug, user_id, name, type, color, icon, parent_id, level, sort_order, is_active)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                    """,
                    (
                        seed.slug,
                        user_id,
                        seed.name,
                        seed.category_type,
                        seed.color,
                        seed.icon,
                        parent_id,
                        seed.level,
                        sort_order(seed),
                    ),
                )
                ids_by_slug[seed.slug] = cursor.lastrowid

            installed = conn.execute(
                "SELECT COUNT(*) AS count FROM categories WHERE user_id = ?", (user_id,)
            ).fetchone()["count"]
            if installed != TAXONOMY_SIZE:
                raise IntegrityViolation(
                    f"Expected {TAXONOMY_SIZE} categories after install, found {installed}"
                )

        logger.info(
            f"Installed {TAXONOMY_SIZE} categories (taxonomy v{TAXONOMY_VERSION}) "
            f"for user {user_id}"
        )
        return TAXONOMY_SIZE

    # =========================================================================
    # Read Operations
    # =========================================================================

    def count(self, user_id: str = DEFAULT_USER_ID) -> int:
        row = (
            self._conn()
            .execute("SELECT COUNT(*) AS count FROM categories WHERE user_id = ?", (user_id,))
            .fetchone()
        )
        return row["count"]

    def list_categories(
        self,
        user_id: str = DEFAULT_USER_ID,
        category_type: Optional[CategoryType] = None,
        include_inactive: bool = False,
    ) -> list[Category]:
        """
        List an owner's categories in display order.

        Args:
            user_id: Owner
            category_type: Only income or only expense categories
            include_inactive: Include deactivated categories

        Returns:
            List of categories ordered by sort_order
        """
        sql = "SELECT * FROM categories WHERE user_id = ?"
        params: list = [user_id]
        if category_type is not None:
            sql += " AND type = ?"
            params.append(CategoryType(category_type).value)
        if not include_inactive:
            sql += " AND is_active = 1"
        sql += " ORDER BY sort_order, id"

        rows = self._conn().execute(sql, params).fetchall()
        return [Category.from_row(row) for row in rows]

    def get_by_slug(self, slug: str, user_id: str = DEFAULT_USER_ID) -> Optional[Category]:
        row = (
            self._conn()
            .execute(
                "SELECT * FROM categories WHERE slug = ? AND user_id = ?",
                (slug, user_id),
            )
            .fetchone()
        )
        return Category.from_row(row) if row else None

    def category_exists(self, slug: str, user_id: str = DEFAULT_USER_ID) -> bool:
        row = (
            self._conn()
            .execute(
                "SELECT 1 FROM categories WHERE slug = ? AND user_id = ? AND is_active = 1",
                (slug, user_id),
            )
            .fetchone()
        )
        return row is not None

    def get_children(self, parent_slug: str, user_id: str = DEFAULT_USER_ID) -> list[Category]:
        """Subcategories of a top-level category."""
        rows = (
            self._conn()
            .execute(
                """
                SELECT c.* FROM categories c
                JOIN categories p ON c.parent_id = p.id
                WHERE p.slug = ? AND c.user_id = ?
                ORDER BY c.sort_order
                """,
                (parent_slug, user_id),
            )
            .fetchall()
        )
        return [Category.from_row(row) for row in rows]
