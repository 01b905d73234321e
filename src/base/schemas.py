from datetime import datetime
from typing import Any, Generic, TypeVar
from uuid import UUID

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, TypeAdapter
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.sql.type_api import TypeEngine
from sqlalchemy.types import TypeDecorator

T = TypeVar("T")


class PydanticJSONB(TypeDecorator, Generic[T]):
    """
    Column type that validates its value with a pydantic TypeAdapter.

    JSONB on PostgreSQL, plain JSON elsewhere. `pydantic_type` is anything a
    TypeAdapter accepts, e.g. `list[str]` for plan features.
    """

    impl = sa.JSON
    cache_ok: bool = True

    pydantic_type: Any
    _adapter: TypeAdapter[T]

    def __init__(self, pydantic_type: Any) -> None:
        super().__init__()
        self.pydantic_type = pydantic_type
        self._adapter = TypeAdapter(pydantic_type)

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(sa.JSON())

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any | None:
        if value is None:
            return None
        validated: T = self._adapter.validate_python(value)
        return self._adapter.dump_python(validated, mode="json")

    def process_result_value(self, value: Any, dialect: Dialect) -> T | None:
        if value is None:
            return None
        return self._adapter.validate_python(value)


class BaseDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime | None


class ErrorResponse(BaseModel):
    error: str
    details: list[dict[str, Any]] | None = None
