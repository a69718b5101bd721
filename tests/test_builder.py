"""
Tests for the UserOperation builder and middleware pipeline
"""
import asyncio

import pytest

from builder import (
    EstimateGasLimits,
    Middleware,
    MiddlewarePipeline,
    SponsorGas,
    UserOperationBuilder,
)
from exceptions import AlreadyBuiltError, BundlerError, UpstreamError, ValidationError
from helpers import TEST_CHAIN_ID, TEST_ENTRY_POINT, TEST_OWNER, TEST_PREDICTED, FakeChainClient


def recording_step(name, log, writes=(), signs=False, **changes):
    async def run(ctx):
        log.append(("start", name))
        await asyncio.sleep(0)
        if changes:
            ctx.update(**changes)
        log.append(("end", name))
    return Middleware(name, run, writes=frozenset(writes or changes), signs=signs)


def failing_step(name, error):
    async def run(ctx):
        raise error
    return Middleware(name, run, writes=frozenset())


async def build(builder):
    return await builder.build(TEST_ENTRY_POINT, TEST_CHAIN_ID, FakeChainClient(), TEST_OWNER)


def new_builder():
    return UserOperationBuilder().use_defaults(sender=TEST_PREDICTED, signature=b"\x00" * 65)


@pytest.mark.asyncio
async def test_steps_run_sequentially_in_registration_order():
    log = []
    builder = new_builder()
    for name in ("first", "second", "third"):
        builder.use_middleware(recording_step(name, log))

    await build(builder)

    assert log == [
        ("start", "first"), ("end", "first"),
        ("start", "second"), ("end", "second"),
        ("start", "third"), ("end", "third"),
    ]


@pytest.mark.asyncio
async def test_defaults_and_call_data_precede_middleware():
    seen = {}

    async def inspect(ctx):
        seen["op"] = ctx.op

    builder = new_builder().use_defaults(call_gas_limit=100)
    builder.set_call_data(b"\x01").set_call_data(b"\x02")
    builder.use_middleware(Middleware("inspect", inspect, writes=frozenset()))
    builder.use_middleware(recording_step("gas", [], call_gas_limit=500))

    op = await build(builder)

    assert seen["op"].call_data == b"\x02"
    assert seen["op"].call_gas_limit == 100
    assert op.call_gas_limit == 500
    assert op.sender == TEST_PREDICTED


def test_use_middleware_after_signer_is_rejected():
    builder = new_builder().use_middleware(recording_step("sign", [], writes={"signature"}, signs=True))

    with pytest.raises(ValidationError, match="after signature middleware sign"):
        builder.use_middleware(recording_step("late", []))


def test_use_defaults_rejects_unknown_fields():
    with pytest.raises(ValidationError, match="Unknown UserOperation fields"):
        UserOperationBuilder().use_defaults(gas_limit=1)


@pytest.mark.asyncio
async def test_builder_is_consumed_by_build():
    builder = new_builder()
    await build(builder)

    with pytest.raises(AlreadyBuiltError):
        await build(builder)
    with pytest.raises(AlreadyBuiltError):
        builder.set_call_data(b"\x01")
    with pytest.raises(AlreadyBuiltError):
        builder.use_middleware(recording_step("late", []))


@pytest.mark.asyncio
async def test_builder_is_locked_while_building():
    builder = new_builder()

    async def reconfigure(ctx):
        builder.set_call_data(b"\xff")

    builder.use_middleware(Middleware("reconfigure", reconfigure, writes=frozenset()))

    with pytest.raises(AlreadyBuiltError):
        await build(builder)


@pytest.mark.asyncio
async def test_step_may_only_write_owned_fields():
    builder = new_builder().use_middleware(
        recording_step("greedy", [], writes={"nonce"}, nonce=1, signature=b"")
    )

    with pytest.raises(ValidationError, match="greedy may not write \\['signature'\\]"):
        await build(builder)


@pytest.mark.asyncio
async def test_upstream_failure_names_step_and_aborts():
    log = []
    cause = TimeoutError("node timed out")
    builder = new_builder()
    builder.use_middleware(failing_step("gas_price", cause))
    builder.use_middleware(recording_step("after", log))

    with pytest.raises(UpstreamError) as exc_info:
        await build(builder)

    assert exc_info.value.step == "gas_price"
    assert exc_info.value.__cause__ is cause
    assert log == []


@pytest.mark.asyncio
async def test_bundler_error_gets_step_name():
    builder = new_builder().use_middleware(failing_step("estimate", BundlerError("AA21", code=-32500)))

    with pytest.raises(BundlerError) as exc_info:
        await build(builder)

    assert exc_info.value.step == "estimate"
    assert exc_info.value.code == -32500


@pytest.mark.asyncio
async def test_missing_sender_is_rejected():
    with pytest.raises(ValidationError, match="sender"):
        await build(UserOperationBuilder())


@pytest.mark.asyncio
async def test_deployed_account_with_init_code_is_rejected():
    builder = new_builder().use_defaults(nonce=1, init_code=b"\x01")

    with pytest.raises(ValidationError, match="initCode"):
        await build(builder)


@pytest.mark.asyncio
async def test_context_exposes_build_parameters():
    seen = {}

    async def inspect(ctx):
        seen.update(entry_point=ctx.entry_point, chain_id=ctx.chain_id, owner=ctx.owner)
        seen["hash"] = ctx.user_operation_hash()

    await build(new_builder().use_middleware(Middleware("inspect", inspect, writes=frozenset())))

    assert seen["entry_point"] == TEST_ENTRY_POINT
    assert seen["chain_id"] == TEST_CHAIN_ID
    assert seen["owner"] == TEST_OWNER
    assert len(seen["hash"]) == 32


def test_pipeline_order_and_strategy():
    account = recording_step("account", [])
    price = recording_step("price", [])
    estimate = recording_step("estimate", [])
    sponsor = recording_step("sponsor", [])
    sign = recording_step("sign", [], signs=True)

    self_funded = MiddlewarePipeline(account, price, EstimateGasLimits(estimate), sign)
    sponsored = MiddlewarePipeline(account, price, SponsorGas(sponsor), sign)

    assert [m.name for m in self_funded.steps] == ["account", "price", "estimate", "sign"]
    assert [m.name for m in sponsored.steps] == ["account", "price", "sponsor", "sign"]
    assert not self_funded.sponsored
    assert sponsored.sponsored
    assert new_builder().use_pipeline(sponsored).middlewares == sponsored.steps
