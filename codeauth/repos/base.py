from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from codeauth.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class BaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """Generic async repository keyed by the model's primary key.

    Repositories only flush; the caller owns the transaction and commits once
    per operation.
    """

    def __init__(self, session: AsyncSession, model: type[ModelType]):
        self.session = session
        self.model = model
        self.pk = inspect(model).primary_key[0]

    async def create_one(self, schema: CreateSchemaType, *, exclude_none: bool = False) -> ModelType:
        """Create a single record."""
        data = schema.model_dump(exclude_none=exclude_none)
        instance = self.model(**data)
        self.session.add(instance)
        await self.session.flush()
        return instance

    async def get_by_id(self, obj_id: Any) -> ModelType | None:
        """Get a record by its primary key."""
        return await self.session.get(self.model, obj_id)

    async def exists(self, obj_id: Any) -> bool:
        stmt = select(self.pk).where(self.pk == obj_id)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def update_by_id(
        self,
        obj_id: Any,
        schema: UpdateSchemaType,
        *,
        exclude_none: bool = True,
    ) -> ModelType | None:
        """Update a record by primary key."""
        instance = await self.get_by_id(obj_id)
        if not instance:
            return None

        data = schema.model_dump(exclude_none=exclude_none)
        for key, value in data.items():
            setattr(instance, key, value)

        await self.session.flush()
        return instance

    async def delete_by_ids(self, obj_ids: list[Any]) -> int:
        """Delete multiple records by primary key. Returns count of deleted."""
        if not obj_ids:
            return 0
        stmt = delete(self.model).where(self.pk.in_(obj_ids))
        result = await self.session.execute(stmt)
        return result.rowcount  # type: ignore
