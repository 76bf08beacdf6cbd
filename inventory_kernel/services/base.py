"""
BaseService -- abstract base for kernel services.

Responsibility:
    Common constructor for every service that writes to the ledger.  A
    service receives the caller's ``Session`` and uses ``session.flush()``,
    never ``session.commit()``: the quantity UPDATE and the movement INSERT
    of one operation, and all lines of one transfer, must land in the
    caller's transaction together.

Architecture position:
    Kernel > Services.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Contract:
        Persists changes with ``flush()`` inside the caller's transaction.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT provide list/query methods; those live in selectors/.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
