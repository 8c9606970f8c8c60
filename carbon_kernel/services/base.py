"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service in the kernel layer.  Concrete services receive a SQLAlchemy
    ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback it.  Each public mutating operation runs in
    its own SAVEPOINT (``session.begin_nested()``) so that a failure leaves
    the caller's transaction exactly as it was before the call.

Failure modes:
    - If a subclass calls ``session.commit()``, a later failure in the same
      caller transaction can no longer be undone and conservation breaks.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the caller's transaction.

    Non-goals:
        - Does NOT provide general query methods -- those belong in
          ``carbon_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
