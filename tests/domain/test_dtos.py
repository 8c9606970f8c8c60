"""Tests for kernel DTOs and collaborator protocols."""

from datetime import date

import pytest

from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.domain.collaborators import CertificateIssuer, VintageRegistry
from carbon_kernel.domain.dtos import (
    BatchInfo,
    ConservationReport,
    EscrowRequestInfo,
    RetirementDetails,
)
from carbon_kernel.domain.escrow_rules import RequestKind, RequestStatus


def _batch(status: BatchStatus) -> BatchInfo:
    return BatchInfo(
        token_id=1,
        holder="alice",
        serial_number="s",
        quantity=10,
        vintage_ref="VCS-1",
        status=status,
    )


class TestBatchInfo:

    @pytest.mark.parametrize(
        "status,expected",
        [
            (BatchStatus.PENDING, False),
            (BatchStatus.REJECTED, False),
            (BatchStatus.CONFIRMED, True),
            (BatchStatus.DETOKENIZATION_REQUESTED, True),
            (BatchStatus.RETIREMENT_REQUESTED, True),
            (BatchStatus.DETOKENIZATION_FINALIZED, False),
            (BatchStatus.RETIREMENT_FINALIZED, False),
        ],
    )
    def test_is_backing_status(self, status, expected):
        assert _batch(status).is_backing_status is expected


class TestRetirementDetails:

    def test_payload_is_json_friendly(self):
        details = RetirementDetails(
            retiring_entity_name="Acme",
            beneficiary="0xbeef",
            consumption_country_code="DE",
            consumption_period_start=date(2023, 1, 1),
            consumption_period_end=date(2023, 12, 31),
        )
        payload = details.to_payload()

        assert payload["consumption_period_start"] == "2023-01-01"
        assert payload["consumption_period_end"] == "2023-12-31"
        assert RetirementDetails.from_payload(payload) == details

    def test_missing_optional_fields_default(self):
        details = RetirementDetails.from_payload({"retiring_entity_name": "Acme"})
        assert details.beneficiary is None
        assert details.consumption_period_start is None
        assert details.retirement_message == ""


class TestEscrowRequestInfo:

    @pytest.mark.parametrize(
        "status,consumed",
        [
            (RequestStatus.PENDING, False),
            (RequestStatus.FINALIZED, True),
            (RequestStatus.REVERTED, True),
        ],
    )
    def test_is_consumed(self, status, consumed):
        info = EscrowRequestInfo(
            request_id=1,
            requester="alice",
            kind=RequestKind.RETIREMENT,
            status=status,
            amount=1,
            vintage_ref="VCS-1",
            batch_ids=(1,),
        )
        assert info.is_consumed is consumed


class TestConservationReport:

    def test_balanced(self):
        report = ConservationReport("VCS-1", outstanding_supply=5, backed_amount=5)
        assert report.is_balanced
        assert report.difference == 0

    def test_unbalanced_difference_is_signed(self):
        report = ConservationReport("VCS-1", outstanding_supply=3, backed_amount=5)
        assert not report.is_balanced
        assert report.difference == -2


class TestCollaboratorProtocols:
    """Structural typing of the kernel's collaborators."""

    def test_duck_typed_certificate_issuer(self):
        class Issuer:
            def register_retirement_event(self, retiring_entity, vintage_ref, amount, details=None):
                return 1

        assert isinstance(Issuer(), CertificateIssuer)

    def test_object_without_methods_is_not_a_registry(self):
        assert not isinstance(object(), VintageRegistry)
