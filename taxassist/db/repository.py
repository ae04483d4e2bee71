"""
TaxAssist Repository - Base class for table-scoped data access.

Every table a user can own gets one subclass. Rows always carry a
``user_id`` and the helpers below always filter by it, so one user's
request can never read or write another user's rows.
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class Repository:
    """Base class for user-scoped tables. Subclasses set TABLE_NAME."""

    TABLE_NAME: str = ""

    def __init__(self, db: "Database"):
        self._db = db

    @property
    def db(self) -> "Database":
        return self._db

    async def _insert(
        self,
        data: Dict[str, Any],
        returning: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Insert a row and return it."""
        columns = list(data.keys())
        placeholders = [f"${i + 1}" for i in range(len(columns))]
        query = (
            f"INSERT INTO {self.TABLE_NAME} ({', '.join(columns)}) "
            f"VALUES ({', '.join(placeholders)}) "
            f"RETURNING {returning}"
        )
        row = await self._db.fetchrow(query, *data.values())
        return dict(row) if row else None

    async def _update_owned(
        self,
        user_id: str,
        id_column: str,
        id_value: Any,
        data: Dict[str, Any],
        returning: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Update one row owned by ``user_id``. Returns None when no row matched."""
        set_clauses = []
        values: List[Any] = []
        for i, (col, val) in enumerate(data.items(), 1):
            set_clauses.append(f"{col} = ${i}")
            values.append(val)
        values.extend([user_id, id_value])
        user_idx = len(values) - 1
        id_idx = len(values)

        query = (
            f"UPDATE {self.TABLE_NAME} "
            f"SET {', '.join(set_clauses)} "
            f"WHERE user_id = ${user_idx} AND {id_column} = ${id_idx} "
            f"RETURNING {returning}"
        )
        row = await self._db.fetchrow(query, *values)
        return dict(row) if row else None

    async def _fetch_owned(
        self,
        user_id: str,
        order_by: str = "",
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch the user's rows with optional ORDER BY and LIMIT."""
        query = f"SELECT * FROM {self.TABLE_NAME} WHERE user_id = $1"
        if order_by:
            query += f" ORDER BY {order_by}"
        if limit:
            query += f" LIMIT {int(limit)}"
        rows = await self._db.fetch(query, user_id)
        return [dict(r) for r in rows]
