"""Response handler chain: registration, precedence, sealing and fallbacks."""

from __future__ import annotations

import asyncio
from typing import Any

from hypothesis import given, settings
from hypothesis import strategies as st
from pydantic import BaseModel, ValidationError
import pytest

from courier.deferred import Deferred
from courier.errors import (
    InvariantViolationError,
    JSONParsingError,
    TransportError,
    UnhandledResponseCode,
)
from courier.handlers import (
    HandlerRegistry,
    ResponseHandler,
    handle_response,
    seal,
)
from courier.mock import MockClient
from courier.outcome import Failure, Success
from courier.response import HttpResponse, ResponseCode
from tests.helpers import CountingSource, RecordingTransform, response

pytestmark = pytest.mark.unit


class App(BaseModel):
    app_id: int
    env: str


def _chain(
    resp: HttpResponse | BaseException,
) -> tuple[ResponseHandler[Any], CountingSource]:
    source = CountingSource(resp)
    return handle_response(source.deferred()), source


# =============================================================================
# Registry & dispatch
# =============================================================================


def test_empty_registry_dispatch_yields_unhandled_response_code() -> None:
    outcome = HandlerRegistry().dispatch(response(418))

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, UnhandledResponseCode)
    assert outcome.error.code == 418


@given(code=st.integers(min_value=100, max_value=599))
@settings(max_examples=25, deadline=None, derandomize=True)
def test_empty_registry_never_matches_any_code(code: int) -> None:
    """Property: the catch-all failure carries the response's own code."""
    outcome = HandlerRegistry().dispatch(response(code))

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, UnhandledResponseCode)
    assert outcome.error.code == code


def test_add_returns_new_registry_and_leaves_parent_untouched() -> None:
    parent = HandlerRegistry()
    child = parent.add(lambda _c: True, lambda _r: Success(1))

    assert len(parent) == 0
    assert len(child) == 1
    assert child is not parent


def test_registry_iterates_in_registration_order() -> None:
    first = RecordingTransform(Success("first"))
    second = RecordingTransform(Success("second"))
    registry = (
        HandlerRegistry().add(lambda _c: True, first).add(lambda _c: True, second)
    )

    assert [entry.transform for entry in registry] == [first, second]
    assert [entry.transform for entry in registry.newest_first()] == [second, first]


def test_dispatch_applies_only_the_winning_transform() -> None:
    broad = RecordingTransform(Success("broad"))
    specific = RecordingTransform(Success("specific"))
    registry = (
        HandlerRegistry()
        .add(lambda c: c >= 400, broad)
        .add(lambda c: c == 404, specific)
    )

    outcome = registry.dispatch(response(404))

    assert outcome == Success("specific")
    assert len(specific.seen) == 1
    assert broad.seen == []


def test_dispatch_falls_back_to_earlier_entry_when_later_does_not_match() -> None:
    registry = (
        HandlerRegistry()
        .add(lambda c: c >= 400, lambda _r: Success("broad"))
        .add(lambda c: c == 404, lambda _r: Success("specific"))
    )

    assert registry.dispatch(response(500)) == Success("broad")


@given(
    codes=st.lists(st.integers(min_value=100, max_value=599), min_size=1, max_size=8),
    probe=st.integers(min_value=100, max_value=599),
)
@settings(max_examples=50, deadline=None, derandomize=True)
def test_most_recent_matching_entry_wins(codes: list[int], probe: int) -> None:
    """Property: dispatch picks the last-registered entry whose predicate holds."""
    registry: HandlerRegistry[int] = HandlerRegistry()
    for index, code in enumerate(codes):
        registry = registry.add(
            lambda c, code=code: c == code,
            lambda _r, index=index: Success(index),
        )

    outcome = registry.dispatch(response(probe))

    matching = [i for i, code in enumerate(codes) if code == probe]
    if matching:
        assert outcome == Success(matching[-1])
    else:
        assert isinstance(outcome, Failure)
        assert isinstance(outcome.error, UnhandledResponseCode)


def test_transform_failure_passes_through_unchanged() -> None:
    error = RuntimeError("conflict")
    registry = HandlerRegistry().add(lambda c: c == 409, lambda _r: Failure(error))

    outcome = registry.dispatch(response(409))

    assert isinstance(outcome, Failure)
    assert outcome.error is error


def test_dispatch_rejects_transform_returning_plain_value() -> None:
    registry = HandlerRegistry().add(lambda _c: True, lambda _r: "not an outcome")

    with pytest.raises(InvariantViolationError, match="expected Success\\|Failure"):
        registry.dispatch(response(200))


# =============================================================================
# Fluent builder
# =============================================================================


@pytest.mark.asyncio
async def test_handle_code_matches_exact_code_only() -> None:
    chain, _ = _chain(response(201))
    handled = chain.handle_code(200, lambda _r: Success("ok"))

    outcome = await handled

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, UnhandledResponseCode)
    assert outcome.error.code == ResponseCode.CREATED


@pytest.mark.asyncio
async def test_second_handler_for_same_code_wins() -> None:
    chain, _ = _chain(response(200))
    handled = chain.handle_code(200, lambda _r: Success("first")).handle_code(
        ResponseCode.OK, lambda _r: Success("second")
    )

    assert await handled == Success("second")


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [301, 302, 304])
async def test_handle_codes_matches_any_member(code: int) -> None:
    chain, _ = _chain(response(code))
    handled = chain.handle_codes(
        [ResponseCode.MOVED_PERMANENTLY, 302, 304], lambda r: Success(int(r.code))
    )

    assert await handled == Success(code)


@pytest.mark.asyncio
@pytest.mark.parametrize(("code", "handled"), [(399, False), (400, True), (503, True)])
async def test_handle_errors_covers_codes_from_400(code: int, handled: bool) -> None:
    chain, _ = _chain(response(code))
    outcome = await chain.handle_errors(lambda r: Failure(RuntimeError(str(r.code))))

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, UnhandledResponseCode) is not handled


@pytest.mark.asyncio
async def test_handle_codes_such_that_receives_response_code() -> None:
    seen: list[ResponseCode] = []

    def predicate(code: ResponseCode) -> bool:
        seen.append(code)
        return code.is_success

    chain, _ = _chain(response(202))
    outcome = await chain.handle_codes_such_that(predicate, lambda _r: Success(True))

    assert outcome == Success(True)
    assert seen == [ResponseCode.ACCEPTED]
    assert isinstance(seen[0], ResponseCode)


@pytest.mark.asyncio
async def test_builder_methods_never_mutate_receiver() -> None:
    chain, _ = _chain(response(200))
    extended = chain.handle_code(200, lambda _r: Success(1))

    assert len(chain.registry) == 0
    assert len(extended.registry) == 1
    assert extended.source is chain.source


@pytest.mark.asyncio
async def test_sibling_chains_do_not_share_handlers() -> None:
    """Forks of one parent see only their own extra handlers."""
    parent, _ = _chain(response(404))
    parent = parent.handle_errors(lambda _r: Failure(RuntimeError("parent")))

    left = parent.handle_code(404, lambda _r: Success("left"))
    right = parent.handle_code(404, lambda _r: Success("right"))

    assert await left == Success("left")
    assert await right == Success("right")
    parent_outcome = await parent
    assert isinstance(parent_outcome, Failure)
    assert str(parent_outcome.error) == "parent"
    assert (len(parent.registry), len(left.registry), len(right.registry)) == (1, 2, 2)


# =============================================================================
# JSON / no-content helpers
# =============================================================================


@pytest.mark.asyncio
async def test_expect_json_body_decodes_into_model(
    ok_json_response: HttpResponse,
) -> None:
    chain, _ = _chain(ok_json_response)

    outcome = await chain.expect_json_body(App)

    assert outcome == Success(App(app_id=42, env="production"))


@pytest.mark.asyncio
async def test_expect_json_body_without_model_returns_plain_data(
    ok_json_response: HttpResponse,
) -> None:
    chain, _ = _chain(ok_json_response)

    outcome = await chain.expect_json_body()

    assert outcome == Success({"app_id": 42, "env": "production"})


@pytest.mark.asyncio
async def test_expect_json_body_wraps_decode_error() -> None:
    chain, _ = _chain(response(200, "<html>oops</html>"))

    outcome = await chain.expect_json_body(App)

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, JSONParsingError)
    assert isinstance(outcome.error.cause, ValidationError)
    assert outcome.error.__cause__ is outcome.error.cause
    assert "JSON parsing error" in str(outcome.error)


@pytest.mark.asyncio
async def test_expect_json_body_wraps_schema_mismatch() -> None:
    chain, _ = _chain(response(200, '{"app_id": "not-a-number", "env": "x"}'))

    outcome = await chain.expect_json_body(App)

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, JSONParsingError)


@pytest.mark.asyncio
async def test_expect_json_body_for_code_only_handles_that_code() -> None:
    created, _ = _chain(response(201, '{"app_id": 7, "env": "dev"}'))
    ok, _ = _chain(response(200, '{"app_id": 7, "env": "dev"}'))

    assert await created.expect_json_body_for_code(201, App) == Success(
        App(app_id=7, env="dev")
    )
    missed = await ok.expect_json_body_for_code(201, App)
    assert isinstance(missed, Failure)
    assert isinstance(missed.error, UnhandledResponseCode)


@pytest.mark.asyncio
async def test_expect_json_body_uses_response_charset() -> None:
    body = '{"app_id": 1, "env": "café"}'.encode("latin-1")
    chain, _ = _chain(
        response(200, body, Content_Type="application/json; charset=ISO-8859-1")
    )

    outcome = await chain.expect_json_body(App)

    assert outcome == Success(App(app_id=1, env="café"))


@pytest.mark.asyncio
async def test_expect_json_body_with_custom_decoder() -> None:
    def decoder(body: bytes, charset: str) -> Success[int] | Failure:
        text = body.decode(charset)
        if text.isdigit():
            return Success(int(text))
        return Failure(ValueError(text))

    good, _ = _chain(response(200, "123"))
    bad, _ = _chain(response(200, "abc"))

    assert await good.expect_json_body(decoder=decoder) == Success(123)
    outcome = await bad.expect_json_body(decoder=decoder)
    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, JSONParsingError)
    assert isinstance(outcome.error.cause, ValueError)


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"", b"ignored", b"\xff\xfe"])
async def test_expect_no_content_succeeds_regardless_of_body(body: bytes) -> None:
    chain, _ = _chain(response(204, body))

    assert await chain.expect_no_content("deleted") == Success("deleted")


@pytest.mark.asyncio
async def test_repeated_expect_no_content_most_recent_wins() -> None:
    chain, _ = _chain(response(204))

    outcome = await chain.expect_no_content("first").expect_no_content("second")

    assert outcome == Success("second")


@pytest.mark.asyncio
async def test_json_success_and_error_range_scenario() -> None:
    """200 parses the body; 404 falls into the error-range handler."""

    def fail_with_message(resp: HttpResponse) -> Failure:
        return Failure(RuntimeError(f"request failed: {resp.body_string()}"))

    def build(resp: HttpResponse) -> ResponseHandler[Any]:
        chain, _ = _chain(resp)
        return chain.expect_json_body(App).handle_errors(fail_with_message)

    missing = await build(response(404, "missing"))
    parsed = await build(response(200, '{"app_id": 3, "env": "qa"}'))

    assert isinstance(missing, Failure)
    assert str(missing.error) == "request failed: missing"
    assert parsed == Success(App(app_id=3, env="qa"))


# =============================================================================
# Sealing
# =============================================================================


@pytest.mark.asyncio
async def test_building_chain_does_not_perform_source() -> None:
    chain, source = _chain(response(200))

    handled = chain.expect_no_content(None).handle_errors(lambda _r: Success(None))
    sealed = handled.seal()

    assert source.calls == 0
    await sealed
    assert source.calls == 1


@pytest.mark.asyncio
async def test_each_run_performs_source_again() -> None:
    chain, source = _chain(response(204))
    sealed = chain.expect_no_content(True).seal()

    first = await sealed.run()
    second = await sealed.run()

    assert first == second == Success(True)
    assert source.calls == 2


@pytest.mark.asyncio
async def test_source_exception_becomes_failure() -> None:
    error = TransportError("connection refused", phase="connect")
    chain, _ = _chain(error)

    outcome = await chain.expect_json_body(App)

    assert isinstance(outcome, Failure)
    assert outcome.error is error


@pytest.mark.asyncio
async def test_transform_exception_becomes_failure() -> None:
    def explode(_resp: HttpResponse) -> Success[int]:
        raise KeyError("missing field")

    chain, _ = _chain(response(200))

    outcome = await chain.handle_code(200, explode)

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, KeyError)


@pytest.mark.asyncio
async def test_non_outcome_transform_becomes_failure() -> None:
    chain, _ = _chain(response(200))

    outcome = await chain.handle_code(200, lambda _r: 42)  # type: ignore[arg-type]

    assert isinstance(outcome, Failure)
    assert isinstance(outcome.error, InvariantViolationError)


@pytest.mark.asyncio
async def test_cancellation_is_not_converted() -> None:
    chain, _ = _chain(asyncio.CancelledError())

    with pytest.raises(asyncio.CancelledError):
        await chain.expect_no_content(None)


@pytest.mark.asyncio
async def test_seal_function_matches_builder_seal() -> None:
    source = CountingSource(response(204))
    registry = HandlerRegistry().add(lambda c: c == 204, lambda _r: Success("done"))

    assert await seal(registry, source.deferred()) == Success("done")


def test_run_sync_outside_event_loop() -> None:
    chain, _ = _chain(response(204))

    assert chain.expect_no_content(1).run_sync() == Success(1)


@pytest.mark.asyncio
async def test_run_sync_inside_event_loop_raises() -> None:
    chain, source = _chain(response(204))

    with pytest.raises(RuntimeError, match="running event loop"):
        chain.expect_no_content(1).run_sync()
    assert source.calls == 0


# =============================================================================
# Entry points
# =============================================================================


@pytest.mark.asyncio
async def test_handle_response_accepts_async_callable() -> None:
    async def fetch() -> HttpResponse:
        return response(204)

    assert await handle_response(fetch).expect_no_content("ok") == Success("ok")


@pytest.mark.asyncio
async def test_handle_response_accepts_request(url: str) -> None:
    client = MockClient([response(204)])

    outcome = await handle_response(client.delete(url)).expect_no_content(True)

    assert outcome == Success(True)
    assert client.calls == 1


def test_handle_response_rejects_other_values() -> None:
    with pytest.raises(TypeError, match="response source"):
        handle_response(42)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_request_chain_start_matches_empty_handler(
    url: str, ok_json_response: HttpResponse
) -> None:
    client = MockClient([ok_json_response, ok_json_response])
    request = client.get(url)

    direct = await request.expect_json_body(App)
    source = Deferred(lambda: request.execute())
    explicit = await handle_response(source).expect_json_body(App)

    assert direct == explicit == Success(App(app_id=42, env="production"))
