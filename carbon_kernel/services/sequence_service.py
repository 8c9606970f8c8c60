"""
SequenceService -- monotonic identifier allocation via locked counter rows.

Responsibility:
    Allocates the public integer identifiers of the kernel: batch token ids,
    escrow request ids and retirement event ids.  Uses a dedicated counter
    table with row-level locking (``SELECT ... FOR UPDATE``) so that ids are
    unique and strictly increasing under concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by BatchRegistry, EscrowCoordinator and
    RetirementCertificateService.

Invariants enforced:
    - Strict monotonicity: the locked counter row is the sole source of truth
      for the next value.  MAX(id) + 1 is never used.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  A rolled back savepoint returns the value.

Failure modes:
    - IntegrityError: concurrent creation of the same counter row (handled
      via savepoint rollback and re-read).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from carbon_kernel.db.base import Base
from carbon_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its last allocated value.
    """

    __tablename__ = "carbon_sequence_counters"

    # Sequence name ("batch", "escrow_request", "retirement_event")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for allocating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value, starting at 1.

    Guarantees:
        - ``SELECT ... FOR UPDATE`` serializes concurrent allocations for
          the same sequence.
        - Gap-free under normal operation; a rolled back caller returns the
          value.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    BATCH = "batch"
    ESCROW_REQUEST = "escrow_request"
    RETIREMENT_EVENT = "retirement_event"

    WELL_KNOWN = (BATCH, ESCROW_REQUEST, RETIREMENT_EVENT)

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for ``sequence_name``.
            - The counter row stays locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        assert counter.current_value > 0, "sequence value must be strictly positive"
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def initialize_sequences(self) -> None:
        """Create the well-known counters at zero if they are missing."""
        for name in self.WELL_KNOWN:
            existing = self._session.execute(
                select(SequenceCounter).where(SequenceCounter.name == name)
            ).scalar_one_or_none()
            if existing is None:
                self._session.add(SequenceCounter(name=name, current_value=0))
        self._session.flush()
