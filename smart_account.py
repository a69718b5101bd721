"""
Smart account facade: counterfactual address, call encoding and the signing pipeline
"""

import logging
from typing import Optional, Sequence, Union

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from builder import EstimateGasLimits, Middleware, MiddlewarePipeline, SponsorGas, UserOperationBuilder
from bundler import BundlerClient
from chain import ChainClient
from config import DEFAULT_GAS_LIMITS, SmartAccountConfig
from deployment import DeploymentDescriptor, predict_sender_address
from middleware import (
    eoa_signature,
    estimate_user_operation_gas,
    get_gas_price,
    resolve_account,
    verifying_paymaster,
)
from user_operations import UserOperation, encode_execute, encode_execute_batch

logger = logging.getLogger(__name__)


class SmartAccount:
    """
    Builds and signs UserOperations for one owner key and account factory.

    Use SmartAccount.init() rather than the constructor: the account address
    has to be resolved on-chain before any operation can be built.
    """

    def __init__(
        self,
        signing_key: str,
        entry_point: str,
        factory: str,
        chain: ChainClient,
        bundler: BundlerClient,
    ):
        self.signer = Account.from_key(signing_key)
        self.entry_point = Web3.to_checksum_address(entry_point)
        self.chain = chain
        self.bundler = bundler
        self.deployment = DeploymentDescriptor(factory=Web3.to_checksum_address(factory), owner=self.signer.address)
        self.address: Optional[str] = None
        self.chain_id: Optional[int] = None
        self.pipeline: Optional[MiddlewarePipeline] = None
        self._dummy_signature = b''
        self._builder: Optional[UserOperationBuilder] = None

    @classmethod
    async def init(
        cls,
        signing_key: str,
        node_rpc_url: str,
        entry_point: str,
        factory: str,
        paymaster_middleware: Optional[Middleware] = None,
        chain: Optional[ChainClient] = None,
        bundler: Optional[BundlerClient] = None,
    ) -> 'SmartAccount':
        """Resolve the account address and assemble the middleware pipeline"""
        instance = cls(
            signing_key,
            entry_point,
            factory,
            chain=chain or ChainClient(node_rpc_url, entry_point),
            bundler=bundler or BundlerClient(node_rpc_url),
        )

        instance.address = await predict_sender_address(instance.chain, instance.deployment)
        instance.chain_id = await instance.chain.get_chain_id()

        # Well-formed placeholder so gas estimation can run signature validation
        instance._dummy_signature = bytes(instance.signer.sign_message(
            encode_defunct(primitive=bytes(Web3.keccak(hexstr="0xdead")))
        ).signature)

        if paymaster_middleware:
            gas_limits = SponsorGas(paymaster_middleware)
        else:
            gas_limits = EstimateGasLimits(estimate_user_operation_gas(instance.bundler))

        instance.pipeline = MiddlewarePipeline(
            resolve_account=resolve_account(instance.chain, instance.deployment.init_code),
            gas_price=get_gas_price(instance.chain),
            gas_limits=gas_limits,
            signature=eoa_signature(instance.signer),
        )
        instance._builder = instance._new_builder()

        logger.info(
            f"Smart account {instance.address} ready for owner {instance.signer.address} "
            f"(chain {instance.chain_id}, sponsored={instance.pipeline.sponsored})"
        )
        return instance

    @classmethod
    async def from_config(cls, config: SmartAccountConfig) -> 'SmartAccount':
        paymaster_middleware = None
        if config.paymaster_url:
            paymaster_middleware = verifying_paymaster(config.paymaster_url, config.paymaster_context)
        return await cls.init(
            config.signing_key,
            config.node_rpc_url,
            config.entry_point_address,
            config.factory_address,
            paymaster_middleware=paymaster_middleware,
        )

    def _new_builder(self) -> UserOperationBuilder:
        return UserOperationBuilder().use_defaults(
            sender=self.address,
            signature=self._dummy_signature,
            call_gas_limit=DEFAULT_GAS_LIMITS["call"],
            verification_gas_limit=DEFAULT_GAS_LIMITS["verification"],
            pre_verification_gas=DEFAULT_GAS_LIMITS["pre_verification"],
        ).use_pipeline(self.pipeline)

    @property
    def builder(self) -> UserOperationBuilder:
        """The pending builder the next build() will consume"""
        if self._builder is None:
            raise RuntimeError("SmartAccount must be created with SmartAccount.init()")
        return self._builder

    @property
    def init_code(self) -> bytes:
        return self.deployment.init_code

    def execute(self, to: str, value: int, data: Union[bytes, str] = b'') -> 'SmartAccount':
        self.builder.set_call_data(encode_execute(to, value, data))
        return self

    def execute_batch(self, to: Sequence[str], data: Sequence[Union[bytes, str]]) -> 'SmartAccount':
        self.builder.set_call_data(encode_execute_batch(to, data))
        return self

    async def build(self) -> UserOperation:
        """Build the pending operation; the next operation starts from a fresh builder"""
        builder, self._builder = self.builder, self._new_builder()
        return await builder.build(self.entry_point, self.chain_id, self.chain, self.signer.address)

    def send(self, user_operation: UserOperation) -> str:
        """Submit a built UserOperation and return its hash"""
        return self.bundler.send_user_operation(user_operation, self.entry_point)
