"""
Owned resource CRUD
===================
Create/read/update/delete for any model carrying a ``user_id`` owner column,
plus paginated listing of one owner's rows.

Ownership enforcement lives in ``check_ownership``; ``get`` is the loader
handed to it.
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from infinitiflow.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

MAX_PAGE_SIZE = 100


class OwnedResourceCRUD(Generic[ModelT]):
    """Generic CRUD for user-owned rows"""

    def __init__(self, model: Type[ModelT], owner_field: str = "user_id"):
        self.model = model
        self.owner_field = owner_field

    @property
    def _owner_column(self):
        return getattr(self.model, self.owner_field)

    async def get(self, db: AsyncSession, resource_id: str) -> Optional[ModelT]:
        result = await db.execute(select(self.model).where(self.model.id == str(resource_id)))
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, owner_id: str, data: Dict[str, Any]) -> ModelT:
        obj = self.model(**{self.owner_field: str(owner_id)}, **data)
        db.add(obj)
        await db.flush()
        await db.refresh(obj)
        return obj

    async def update(self, db: AsyncSession, obj: ModelT, data: Dict[str, Any]) -> ModelT:
        """Assign only the keys present in data"""
        for key, value in data.items():
            setattr(obj, key, value)
        await db.flush()
        await db.refresh(obj)
        return obj

    async def delete(self, db: AsyncSession, obj: ModelT) -> None:
        await db.delete(obj)
        await db.flush()

    async def list_for_owner(
        self,
        db: AsyncSession,
        owner_id: str,
        page: int = 1,
        limit: int = 10,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        One page of the owner's rows, newest first unless ``sort`` names a
        column (prefix with ``-`` for descending).

        Returns {"items", "page", "limit", "total", "pages"}.
        """
        page = max(1, page)
        limit = max(1, min(MAX_PAGE_SIZE, limit))

        query = select(self.model).where(self._owner_column == str(owner_id))
        for key, value in (filters or {}).items():
            if value is not None:
                query = query.where(getattr(self.model, key) == value)

        count_result = await db.execute(select(func.count()).select_from(query.subquery()))
        total = count_result.scalar() or 0

        query = query.order_by(self._order_by(sort)).offset((page - 1) * limit).limit(limit)
        result = await db.execute(query)
        items: List[ModelT] = list(result.scalars().all())

        return {
            "items": items,
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        }

    def _order_by(self, sort: Optional[str]):
        if sort:
            descending = sort.startswith("-")
            column = self.model.__table__.columns.get(sort.lstrip("-"))
            if column is not None:
                return column.desc() if descending else column.asc()
        return self.model.created_at.desc()
