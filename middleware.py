"""
Resolution middlewares filling in the UserOperation fields
"""

import asyncio
import logging
from typing import Dict

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from hexbytes import HexBytes
from web3.exceptions import MethodUnavailable

from builder import Middleware, MiddlewareContext
from bundler import BundlerClient, parse_quantity
from chain import ChainClient
from config import DEFAULT_NONCE_KEY

logger = logging.getLogger(__name__)

# Headroom added on top of the node's suggested priority fee, in percent
PRIORITY_FEE_BUFFER_PERCENT = 13

GAS_PRICE_FIELDS = frozenset({"max_fee_per_gas", "max_priority_fee_per_gas"})
GAS_LIMIT_FIELDS = frozenset({"pre_verification_gas", "verification_gas_limit", "call_gas_limit"})


def resolve_account(chain: ChainClient, init_code: bytes) -> Middleware:
    """Read the nonce and only keep initCode while the account is undeployed"""

    async def resolve(ctx: MiddlewareContext) -> None:
        nonce = await chain.get_nonce(ctx.op.sender, DEFAULT_NONCE_KEY)
        ctx.update(nonce=nonce, init_code=init_code if nonce == 0 else b'')
        if nonce == 0:
            logger.info(f"Account {ctx.op.sender} not deployed yet, attaching initCode")

    return Middleware("resolve_account", resolve, writes=frozenset({"nonce", "init_code"}))


def get_gas_price(chain: ChainClient) -> Middleware:
    """EIP-1559 fees from the node, or the legacy gas price where unsupported"""

    async def resolve(ctx: MiddlewareContext) -> None:
        try:
            tip = await chain.get_max_priority_fee()
        except MethodUnavailable:
            gas_price = await chain.get_gas_price()
            logger.debug(f"eth_maxPriorityFeePerGas unavailable, using gas price {gas_price}")
            ctx.update(max_fee_per_gas=gas_price, max_priority_fee_per_gas=gas_price)
            return

        max_priority_fee_per_gas = tip + tip // 100 * PRIORITY_FEE_BUFFER_PERCENT
        base_fee = await chain.get_base_fee()
        if base_fee is None:
            max_fee_per_gas = max_priority_fee_per_gas
        else:
            max_fee_per_gas = base_fee * 2 + max_priority_fee_per_gas

        logger.debug(f"Gas price: maxFeePerGas={max_fee_per_gas} maxPriorityFeePerGas={max_priority_fee_per_gas}")
        ctx.update(max_fee_per_gas=max_fee_per_gas, max_priority_fee_per_gas=max_priority_fee_per_gas)

    return Middleware("gas_price", resolve, writes=GAS_PRICE_FIELDS)


def _apply_gas_estimates(ctx: MiddlewareContext, estimates: Dict, **extra) -> None:
    # Older bundlers report verificationGas instead of verificationGasLimit
    verification = estimates.get('verificationGasLimit', estimates.get('verificationGas'))
    ctx.update(
        pre_verification_gas=parse_quantity(estimates['preVerificationGas']),
        verification_gas_limit=parse_quantity(verification),
        call_gas_limit=parse_quantity(estimates['callGasLimit']),
        **extra
    )


async def estimate_creation_gas(chain: ChainClient, init_code: bytes, entry_point: str) -> int:
    """Gas for the factory call in initCode, sent from the entry point"""
    factory, factory_data = init_code[:20], init_code[20:]
    creation_gas = await chain.estimate_gas("0x" + factory.hex(), factory_data, sender=entry_point)
    logger.debug(f"Account creation gas: {creation_gas}")
    return creation_gas


def estimate_user_operation_gas(bundler: BundlerClient) -> Middleware:
    """Gas limits from eth_estimateUserOperationGas"""

    async def resolve(ctx: MiddlewareContext) -> None:
        if ctx.op.nonce == 0 and ctx.op.init_code:
            # Undeployed account: verification also pays for the factory call
            creation_gas = await estimate_creation_gas(ctx.chain, ctx.op.init_code, ctx.entry_point)
            ctx.update(verification_gas_limit=ctx.op.verification_gas_limit + creation_gas)

        estimates = await asyncio.to_thread(
            bundler.estimate_user_operation_gas, ctx.op, ctx.entry_point
        )
        logger.debug(f"Gas estimates: {estimates}")
        _apply_gas_estimates(ctx, estimates)

    return Middleware("estimate_user_operation_gas", resolve, writes=GAS_LIMIT_FIELDS)


def verifying_paymaster(paymaster_url: str, context: Dict) -> Middleware:
    """Gas limits and paymasterAndData from a pm_sponsorUserOperation paymaster"""
    paymaster = BundlerClient(paymaster_url)

    async def resolve(ctx: MiddlewareContext) -> None:
        sponsorship = await asyncio.to_thread(
            paymaster.sponsor_user_operation, ctx.op, ctx.entry_point, context
        )
        logger.info(f"UserOperation for {ctx.op.sender} sponsored by paymaster")
        _apply_gas_estimates(
            ctx, sponsorship,
            paymaster_and_data=bytes(HexBytes(sponsorship['paymasterAndData']))
        )

    return Middleware(
        "verifying_paymaster", resolve,
        writes=GAS_LIMIT_FIELDS | {"paymaster_and_data"}
    )


def eoa_signature(account: LocalAccount) -> Middleware:
    """Sign the UserOperation hash with the owner key (EIP-191)"""

    async def resolve(ctx: MiddlewareContext) -> None:
        user_operation_hash = ctx.user_operation_hash()
        signed = account.sign_message(encode_defunct(primitive=user_operation_hash))
        logger.debug(f"Signed UserOperation hash {user_operation_hash.hex()}")
        ctx.update(signature=bytes(signed.signature))

    return Middleware("eoa_signature", resolve, writes=frozenset({"signature"}), signs=True)
