"""Tests for the structured logging system (consolidation_kernel/logging_config.py)."""

import json
import logging
from io import StringIO
from uuid import uuid4

import pytest

from consolidation_engines.tracer import compute_input_fingerprint, traced_engine
from consolidation_kernel.exceptions import EntityNotFoundError
from consolidation_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state, then restore the suite-wide DEBUG configuration."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        (record,) = _parse_all_logs(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "consolidation_kernel.test"
        assert "ts" in record

    def test_extra_and_context_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        entity_id = uuid4()
        with LogContext.bind(request_id="req-1", scope_kind="entity"):
            get_logger("test").info("scope_resolved", extra={"entity_id": entity_id, "entity_count": 1})

        (record,) = _parse_all_logs(stream)
        assert record["request_id"] == "req-1"
        assert record["scope_kind"] == "entity"
        assert record["entity_id"] == str(entity_id)
        assert record["entity_count"] == 1
        assert "organization_id" not in record

    def test_typed_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise EntityNotFoundError("e-1")
        except EntityNotFoundError:
            get_logger("test").error("lookup_failed", exc_info=True)

        (record,) = _parse_all_logs(stream)
        assert record["exc_code"] == "ENTITY_NOT_FOUND"
        assert record["exc_type"] == "EntityNotFoundError"
        assert record["exc_entity_id"] == "e-1"
        assert "traceback" in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.debug("second")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["first"]

    def test_configure_is_idempotent(self):
        first, first_stream = _make_handler()
        second, second_stream = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        get_logger("test").info("once")

        assert len(_parse_all_logs(first_stream)) == 1
        assert second_stream.getvalue() == ""


class TestLogContext:
    def test_bind_restores_previous_value(self):
        LogContext.set(request_id="outer")
        with LogContext.bind(request_id="inner", organization_id="org"):
            assert LogContext.get_all() == {"request_id": "inner", "organization_id": "org"}
        assert LogContext.get_all() == {"request_id": "outer"}

    def test_unknown_fields_ignored(self):
        with LogContext.bind(colour="blue"):
            assert LogContext.get_all() == {}

    def test_clear(self):
        LogContext.set(actor_id="a")
        LogContext.clear()
        assert LogContext.get_all() == {}


class TestEngineTracer:
    def test_fingerprint_is_order_independent_for_sets(self):
        a, b = uuid4(), uuid4()
        assert compute_input_fingerprint(("ids",), {"ids": {a, b}}) == compute_input_fingerprint(
            ("ids",), {"ids": {b, a}},
        )
        assert len(compute_input_fingerprint(("ids",), {})) == 16

    def test_trace_emitted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)

        @traced_engine("sample_engine", "2.1", fingerprint_fields=("value",))
        def run(*, value):
            return value * 2

        assert run(value=21) == 42
        (record,) = _parse_all_logs(stream)
        assert record["message"] == "CONSOLIDATION_ENGINE_TRACE"
        assert record["engine_name"] == "sample_engine"
        assert record["engine_version"] == "2.1"
        assert record["input_fingerprint"] == compute_input_fingerprint(("value",), {"value": 21})
