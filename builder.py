"""
UserOperation builder and its ordered middleware pipeline
"""

import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional, Tuple, Union

from chain import ChainClient
from exceptions import AlreadyBuiltError, UpstreamError, UserOperationError, ValidationError
from user_operations import UserOperation, get_user_operation_hash

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Middleware:
    """A named asynchronous pipeline step and the UserOperation fields it owns"""
    name: str
    fn: Callable[['MiddlewareContext'], Awaitable[None]]
    writes: FrozenSet[str]
    signs: bool = False

    async def __call__(self, ctx: 'MiddlewareContext') -> None:
        await self.fn(ctx)


class MiddlewareContext:
    """View of one build handed to each middleware in turn"""

    def __init__(self, op: UserOperation, entry_point: str, chain_id: int, chain: ChainClient, owner: str):
        self._op = op
        self.entry_point = entry_point
        self.chain_id = chain_id
        self.chain = chain
        self.owner = owner
        self._step: Optional[Middleware] = None

    @property
    def op(self) -> UserOperation:
        return self._op

    def update(self, **changes) -> None:
        """Replace fields of the current snapshot; only the running step's fields may change"""
        unknown = set(changes) - set(UserOperation.field_names())
        if unknown:
            raise ValidationError(f"Unknown UserOperation fields: {sorted(unknown)}")
        allowed = self._step.writes if self._step else frozenset()
        forbidden = set(changes) - allowed
        if forbidden:
            step_name = self._step.name if self._step else "<none>"
            raise ValidationError(f"Middleware {step_name} may not write {sorted(forbidden)}")
        self._op = replace(self._op, **changes)

    def user_operation_hash(self) -> bytes:
        return get_user_operation_hash(self._op, self.entry_point, self.chain_id)

    def _enter(self, step: Optional[Middleware]) -> None:
        self._step = step


@dataclass(frozen=True)
class EstimateGasLimits:
    """Self-funded operation: gas limits come from the bundler's estimate"""
    middleware: Middleware


@dataclass(frozen=True)
class SponsorGas:
    """Sponsored operation: a paymaster supplies gas limits and paymasterAndData"""
    middleware: Middleware


GasLimitStrategy = Union[EstimateGasLimits, SponsorGas]


@dataclass(frozen=True)
class MiddlewarePipeline:
    """The fixed account -> gas price -> gas limits -> signature order"""
    resolve_account: Middleware
    gas_price: Middleware
    gas_limits: GasLimitStrategy
    signature: Middleware

    @property
    def steps(self) -> Tuple[Middleware, ...]:
        return (self.resolve_account, self.gas_price, self.gas_limits.middleware, self.signature)

    @property
    def sponsored(self) -> bool:
        return isinstance(self.gas_limits, SponsorGas)


class UserOperationBuilder:
    """
    Single-use builder for one UserOperation.

    Defaults are applied first, then the call data, then every middleware in
    registration order. build() consumes the builder: it can neither be
    reconfigured nor built again afterwards.
    """

    def __init__(self):
        self._defaults: Dict[str, object] = {}
        self._call_data: Optional[bytes] = None
        self._middlewares: List[Middleware] = []
        self._locked = False

    def _ensure_open(self) -> None:
        if self._locked:
            raise AlreadyBuiltError("UserOperationBuilder has already been built")

    def use_defaults(self, **defaults) -> 'UserOperationBuilder':
        self._ensure_open()
        unknown = set(defaults) - set(UserOperation.field_names())
        if unknown:
            raise ValidationError(f"Unknown UserOperation fields: {sorted(unknown)}")
        self._defaults.update(defaults)
        return self

    def set_call_data(self, call_data: bytes) -> 'UserOperationBuilder':
        self._ensure_open()
        self._call_data = bytes(call_data)
        return self

    def use_middleware(self, middleware: Middleware) -> 'UserOperationBuilder':
        self._ensure_open()
        if self._middlewares and self._middlewares[-1].signs:
            raise ValidationError(
                f"Cannot register {middleware.name} after signature middleware {self._middlewares[-1].name}"
            )
        self._middlewares.append(middleware)
        return self

    def use_pipeline(self, pipeline: MiddlewarePipeline) -> 'UserOperationBuilder':
        for middleware in pipeline.steps:
            self.use_middleware(middleware)
        return self

    @property
    def middlewares(self) -> Tuple[Middleware, ...]:
        return tuple(self._middlewares)

    @property
    def call_data(self) -> Optional[bytes]:
        return self._call_data

    async def build(self, entry_point: str, chain_id: int, chain: ChainClient, owner: str) -> UserOperation:
        """Run every middleware in order and return the finished UserOperation"""
        self._ensure_open()
        self._locked = True

        if 'sender' not in self._defaults:
            raise ValidationError("UserOperation sender must be set with use_defaults")
        op = UserOperation(**self._defaults)
        if self._call_data is not None:
            op = replace(op, call_data=self._call_data)

        ctx = MiddlewareContext(op, entry_point, chain_id, chain, owner)
        for middleware in self._middlewares:
            logger.debug(f"Running middleware {middleware.name}")
            ctx._enter(middleware)
            try:
                await middleware(ctx)
            except UpstreamError as e:
                if e.step is None:
                    e.step = middleware.name
                raise
            except UserOperationError:
                raise
            except Exception as e:
                raise UpstreamError(f"Middleware {middleware.name} failed: {e}", step=middleware.name) from e
        ctx._enter(None)

        op = ctx.op
        if op.nonce > 0 and op.init_code:
            raise ValidationError(f"Account {op.sender} is deployed (nonce {op.nonce}) but initCode is set")

        logger.info(f"Built UserOperation for {op.sender} with nonce {op.nonce}")
        return op
