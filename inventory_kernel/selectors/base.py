"""
Module: inventory_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.py.  Selectors never add, delete, flush or commit.

Selectors return frozen DTOs (domain/dtos.py), never ORM instances.
"""

from abc import ABC
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import Page, Pagination

T = TypeVar("T")


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Accepts a Session from the caller and performs read-only queries.
    """

    def __init__(self, session: Session):
        self.session = session

    def _paginate(
        self,
        stmt: Select,
        pagination: Pagination,
        to_dto: Callable[[object], T],
    ) -> Page[T]:
        """Run ``stmt`` for one page and count the unpaged result."""
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.offset(pagination.offset).limit(pagination.limit)
        ).scalars().all()
        return Page(
            items=tuple(to_dto(row) for row in rows),
            page=pagination.page,
            limit=pagination.limit,
            total=total,
        )
