"""Tests for the pure escrow arithmetic (carbon_kernel.domain.escrow_rules)."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from carbon_kernel.domain.authority import Role
from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.domain.escrow_rules import (
    RequestKind,
    check_admission,
    check_non_fractional,
    check_request_shape,
    minimal_unit,
    normalize_amount,
    plan_split,
    token_scale,
)
from carbon_kernel.exceptions import (
    AdmissionControlError,
    AmountExceedsBatchesError,
    DuplicateBatchReferenceError,
    EmptyBatchListError,
    FractionalAmountError,
    InvalidAmountError,
    ValidationError,
)

SCALE = 10**18


class TestRequestKind:
    """Kind-specific statuses and finalizer roles."""

    def test_detokenization(self):
        kind = RequestKind.DETOKENIZATION
        assert kind.requested_status is BatchStatus.DETOKENIZATION_REQUESTED
        assert kind.finalized_status is BatchStatus.DETOKENIZATION_FINALIZED
        assert kind.finalizer_role is Role.DETOKENIZER

    def test_retirement(self):
        kind = RequestKind.RETIREMENT
        assert kind.requested_status is BatchStatus.RETIREMENT_REQUESTED
        assert kind.finalized_status is BatchStatus.RETIREMENT_FINALIZED
        assert kind.finalizer_role is Role.RETIREMENT_FINALIZER


class TestRequestShape:
    """Amount positivity and batch list checks."""

    @pytest.mark.parametrize("amount", [0, -1, -SCALE])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            check_request_shape(amount, [1])

    def test_empty_batch_list(self):
        with pytest.raises(EmptyBatchListError):
            check_request_shape(SCALE, [])

    def test_duplicate_batch(self):
        with pytest.raises(DuplicateBatchReferenceError) as exc_info:
            check_request_shape(SCALE, [1, 2, 1])
        assert exc_info.value.batch_id == 1

    def test_valid_shape(self):
        check_request_shape(SCALE, [3, 1, 2])


class TestNonFractional:
    """Amounts must be multiples of the vintage's minimal unit."""

    def test_sub_unit_amount_rejected_at_whole_unit_precision(self):
        with pytest.raises(FractionalAmountError) as exc_info:
            check_non_fractional(1, "VCS-1", precision=0)
        assert exc_info.value.minimal_unit == SCALE
        assert isinstance(exc_info.value, ValidationError)

    def test_whole_unit_accepted(self):
        check_non_fractional(SCALE, "VCS-1", precision=0)

    def test_hundredths_at_precision_two(self):
        check_non_fractional(SCALE // 100, "VCS-1", precision=2)
        with pytest.raises(FractionalAmountError):
            check_non_fractional(SCALE // 1000, "VCS-1", precision=2)

    def test_minimal_unit(self):
        assert minimal_unit(0) == SCALE
        assert minimal_unit(18) == 1
        assert minimal_unit(2, token_decimals=6) == 10**4

    @pytest.mark.parametrize("precision", [-1, 19])
    def test_precision_out_of_range(self, precision):
        with pytest.raises(ValueError):
            minimal_unit(precision)


class TestAdmission:
    """Only the last batch of a request may be partially consumed."""

    def test_documented_counterexample(self):
        # batches [10, 10, 1]; all-but-last = 20 >= 1
        with pytest.raises(AdmissionControlError) as exc_info:
            check_admission(1, total_amount=21, last_amount=1)
        err = exc_info.value
        assert err.all_but_last == 20
        assert err.code == "ADMISSION_CONTROL_VIOLATION"

    def test_exact_total_accepted(self):
        check_admission(21, total_amount=21, last_amount=1)

    def test_split_of_last_batch_accepted(self):
        # batches [10, 10]; 15 consumes the first fully, the second partly
        check_admission(15, total_amount=20, last_amount=10)

    def test_amount_equal_to_all_but_last_rejected(self):
        with pytest.raises(AdmissionControlError):
            check_admission(10, total_amount=20, last_amount=10)

    def test_sub_unit_amount_compared_on_whole_units(self):
        # batches [5, 3] at scale 100; 5.5 rounds down to 5 = all-but-last
        with pytest.raises(AdmissionControlError):
            check_admission(550, total_amount=800, last_amount=300, scale=100)
        check_admission(650, total_amount=800, last_amount=300, scale=100)

    def test_sub_unit_amount_on_single_batch(self):
        with pytest.raises(AdmissionControlError):
            check_admission(50, total_amount=300, last_amount=300, scale=100)
        check_admission(150, total_amount=300, last_amount=300, scale=100)

    @given(
        quantities=st.lists(st.integers(min_value=1, max_value=50), min_size=1, max_size=5),
        data=st.data(),
    )
    def test_admitted_amounts_always_leave_a_valid_split(self, quantities, data):
        scale = 100
        total = sum(quantities) * scale
        amount = data.draw(st.integers(min_value=1, max_value=total))
        try:
            check_admission(amount, total, quantities[-1] * scale, scale)
        except AdmissionControlError:
            return
        plan = plan_split(amount, total, token_decimals=2)
        assert 0 <= plan.remainder_units < quantities[-1]

    def test_amount_above_total(self):
        with pytest.raises(AmountExceedsBatchesError) as exc_info:
            check_admission(22, total_amount=21, last_amount=1)
        assert exc_info.value.total_amount == 21

    @given(
        quantities=st.lists(st.integers(min_value=1, max_value=1000), min_size=1, max_size=6),
        data=st.data(),
    )
    def test_admitted_amounts_leave_only_last_batch_partial(self, quantities, data):
        total = sum(quantities)
        amount = data.draw(st.integers(min_value=1, max_value=total))
        try:
            check_admission(amount, total, quantities[-1])
        except AdmissionControlError:
            assert total - quantities[-1] >= amount
        else:
            assert amount == total or total - quantities[-1] < amount


class TestSplitPlan:
    """Whole-unit normalization and remainder computation."""

    def test_token_scale(self):
        assert token_scale() == SCALE
        assert token_scale(6) == 10**6

    def test_normalize_rounds_down(self):
        assert normalize_amount(60 * SCALE + 5) == 60 * SCALE
        assert normalize_amount(60 * SCALE) == 60 * SCALE

    def test_partial_consumption(self):
        plan = plan_split(60 * SCALE, 100 * SCALE)
        assert plan.requires_split
        assert plan.remainder_units == 40
        assert plan.normalized_amount == 60 * SCALE

    def test_full_consumption(self):
        plan = plan_split(100 * SCALE, 100 * SCALE)
        assert not plan.requires_split
        assert plan.remainder_units == 0

    def test_sub_unit_amount_leaves_whole_unit_remainder(self):
        plan = plan_split(60 * SCALE + SCALE // 2, 100 * SCALE)
        assert plan.remainder_units == 40
