"""
Shared route helpers: pagination parameters and the success envelope
"""
from typing import Any, Iterable, Optional, Type
from fastapi import Query
from pydantic import BaseModel
import math

from backoffice.core.config import settings


class PageParams:
    """Query parameters ?page=&limit= clamped to the configured maximum"""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1)
    ):
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)


def dump(schema: Type[BaseModel], obj) -> dict:
    return schema.model_validate(obj).model_dump(mode="json")


def dump_list(schema: Type[BaseModel], objs: Iterable) -> list:
    return [dump(schema, obj) for obj in objs]


def success(data: Any = None, message: Optional[str] = None, pagination: Optional[dict] = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body


def paginated(schema: Type[BaseModel], items: Iterable, total: int, params: PageParams) -> dict:
    return success(
        dump_list(schema, items),
        pagination={
            "page": params.page,
            "limit": params.limit,
            "total": total,
            "pages": math.ceil(total / params.limit) if total else 0,
        }
    )
