from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar('T')


class CamelModel(BaseModel):
    """Request/response base: camelCase on the wire, snake_case in Python"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginatedResponse(CamelModel, Generic[T]):
    """Paginated list"""
    records: List[T] = Field(description="Items on this page")
    total: int = Field(description="Total matching items")
    page: int = Field(description="Page number")
    limit: int = Field(description="Page size")
    total_pages: int = Field(description="Number of pages")
