"""Tests for structured logging (carbon_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from carbon_kernel.domain.batch_status import BatchStatus
from carbon_kernel.exceptions import BatchNotConfirmedError, RequestAlreadyConsumedError
from carbon_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)
from tests.conftest import HOLDER


@pytest.fixture
def log_stream():
    """Route carbon_kernel records into a fresh stream; restore the suite config after."""
    reset_logging()
    stream = StringIO()
    configure_logging(handler=logging.StreamHandler(stream))
    yield stream
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


logger = get_logger("tests.logging")


class TestRecordShape:

    def test_envelope(self, log_stream):
        logger.info("batch_minted")

        [record] = _records(log_stream)
        assert record["message"] == "batch_minted"
        assert record["level"] == "INFO"
        assert record["logger"] == "carbon_kernel.tests.logging"
        assert record["ts"].endswith("+00:00")

    def test_bound_context_and_extras(self, log_stream):
        with LogContext.bind(batch_id=7, vintage_ref="VCS-191-2008"):
            logger.info("batch_confirmed", extra={"quantity": 42})

        [record] = _records(log_stream)
        assert record["batch_id"] == "7"
        assert record["vintage_ref"] == "VCS-191-2008"
        assert record["quantity"] == 42
        assert "request_id" not in record

    def test_token_amount_beyond_float_precision_is_exact(self, log_stream):
        amount = 123_456 * 10**18 + 1
        logger.info("tokens_minted", extra={"amount": amount})

        assert _records(log_stream)[0]["amount"] == amount

    def test_enums_uuids_and_sets(self, log_stream):
        issuance_id = uuid4()
        logger.info(
            "batch_transition",
            extra={
                "to_status": BatchStatus.CONFIRMED,
                "issuance_id": issuance_id,
                "roles": frozenset({"verifier", "tokenizer"}),
            },
        )

        record = _records(log_stream)[0]
        assert record["to_status"] == "confirmed"
        assert record["issuance_id"] == str(issuance_id)
        assert record["roles"] == ["tokenizer", "verifier"]

    def test_kernel_error_fields(self, log_stream):
        try:
            raise RequestAlreadyConsumedError(12, "finalized")
        except RequestAlreadyConsumedError:
            logger.warning("escrow_finalize_rejected", exc_info=True)

        record = _records(log_stream)[0]
        assert record["exc_type"] == "RequestAlreadyConsumedError"
        assert record["exc_code"] == "REQUEST_ALREADY_CONSUMED"
        assert record["exc_request_id"] == 12
        assert record["exc_status"] == "finalized"
        assert "Traceback" in record["traceback"]

    def test_plain_error_has_no_code(self, log_stream):
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("unexpected", exc_info=True)

        record = _records(log_stream)[0]
        assert record["exc_message"] == "boom"
        assert "exc_code" not in record

    def test_debug_dropped_at_default_level(self, log_stream):
        logger.debug("noise")
        logger.info("signal")

        assert [r["message"] for r in _records(log_stream)] == ["signal"]


class TestLogContext:

    def test_bind_nests_and_restores(self):
        LogContext.set(actor_id="alice")
        with LogContext.bind(actor_id="verifier", request_id=3):
            assert LogContext.get_all() == {"actor_id": "verifier", "request_id": "3"}
            with LogContext.bind(vintage_ref="VCS-1"):
                assert LogContext.get_all()["vintage_ref"] == "VCS-1"
            assert "vintage_ref" not in LogContext.get_all()
        assert LogContext.get_all() == {"actor_id": "alice"}

    def test_none_does_not_overwrite(self):
        with LogContext.bind(batch_id=5):
            with LogContext.bind(batch_id=None, request_id=None):
                assert LogContext.get_all() == {"batch_id": "5"}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(batch_id=9):
                raise RuntimeError("inside")
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(ValueError, match="Unknown log context fields"):
            LogContext.set(batch=1)

    def test_clear(self):
        LogContext.set(**{name: "x" for name in CONTEXT_FIELDS})
        assert len(LogContext.get_all()) == len(CONTEXT_FIELDS)
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_second_configure_is_a_no_op(self, log_stream):
        configure_logging(handler=logging.StreamHandler(StringIO()))

        assert len(logging.getLogger("carbon_kernel").handlers) == 1

    def test_child_loggers_share_the_handler(self, log_stream):
        get_logger("services.escrow_coordinator").info("escrow_request_created")

        assert _records(log_stream)[0]["logger"] == (
            "carbon_kernel.services.escrow_coordinator"
        )


class TestServiceLogging:
    """Rejections logged by services carry the bound ledger context."""

    def test_rejected_fractionalization(
        self, make_vintage, make_pending_batch, fractionalization, holder_ctx, captured_logs
    ):
        make_vintage()
        batch_id = make_pending_batch()

        with pytest.raises(BatchNotConfirmedError):
            fractionalization.fractionalize(holder_ctx, batch_id)

        [record] = [r for r in captured_logs() if r["message"] == "fractionalization_rejected"]
        assert record["level"] == "WARNING"
        assert record["error_code"] == "BATCH_NOT_CONFIRMED"
        assert record["batch_id"] == str(batch_id)
        assert record["actor_id"] == HOLDER
