"""
RetirementCertificateService -- database-backed CertificateIssuer.

Responsibility:
    Records retirement events on behalf of EscrowCoordinator and returns
    their sequential event ids.  Implements
    ``carbon_kernel.domain.CertificateIssuer``.

Architecture position:
    Kernel > Services.  Production deployments may substitute an external
    certificate issuer; the kernel only depends on the protocol.

Failure modes:
    - InvalidAmountError for a non-positive amount.
    - RetirementEventNotFoundError from ``get_event``.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from carbon_kernel.domain.clock import Clock, SystemClock
from carbon_kernel.domain.dtos import RetirementDetails, RetirementEventInfo
from carbon_kernel.exceptions import InvalidAmountError, RetirementEventNotFoundError
from carbon_kernel.logging_config import get_logger
from carbon_kernel.models.retirement import RetirementEventModel
from carbon_kernel.services.base import BaseService
from carbon_kernel.services.sequence_service import SequenceService

logger = get_logger("services.retirement_certificates")


class RetirementCertificateService(BaseService):
    """Append-only register of retirement events."""

    def __init__(
        self,
        session: Session,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._sequences = sequence_service or SequenceService(session)
        self._clock = clock or SystemClock()

    def register_retirement_event(
        self,
        retiring_entity: str,
        vintage_ref: str,
        amount: int,
        details: RetirementDetails | None = None,
    ) -> int:
        if amount <= 0:
            raise InvalidAmountError(amount)

        with self.session.begin_nested():
            event_id = self._sequences.next_value(SequenceService.RETIREMENT_EVENT)
            self.session.add(
                RetirementEventModel(
                    event_id=event_id,
                    retiring_entity=retiring_entity,
                    vintage_ref=vintage_ref,
                    amount=amount,
                    details=details.to_payload() if details is not None else None,
                    registered_at=self._clock.now(),
                    created_by=retiring_entity,
                )
            )
            self.session.flush()

        logger.info(
            "retirement_event_registered",
            extra={
                "event_id": event_id,
                "retiring_entity": retiring_entity,
                "vintage": vintage_ref,
                "amount": amount,
            },
        )
        return event_id

    def get_event(self, event_id: int) -> RetirementEventInfo:
        event = self.session.execute(
            select(RetirementEventModel).where(RetirementEventModel.event_id == event_id)
        ).scalar_one_or_none()
        if event is None:
            raise RetirementEventNotFoundError(event_id)
        return event.to_dto()
