"""
UserOperation model, hashing and call data encoding for smart accounts
"""

import logging
from dataclasses import dataclass, fields
from typing import Sequence, Tuple, Union

from eth_abi import encode
from eth_utils import is_address
from web3 import Web3

from exceptions import ValidationError

logger = logging.getLogger(__name__)


# Function selectors on the smart account
EXECUTE_SELECTOR = Web3.keccak(text="execute(address,uint256,bytes)")[:4]
EXECUTE_BATCH_SELECTOR = Web3.keccak(text="executeBatch(address[],bytes[])")[:4]


@dataclass(frozen=True)
class UserOperation:
    """ERC-4337 v0.6 UserOperation. Instances are never mutated; middlewares replace them."""
    sender: str
    nonce: int = 0
    init_code: bytes = b''
    call_data: bytes = b''
    call_gas_limit: int = 0
    verification_gas_limit: int = 0
    pre_verification_gas: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    paymaster_and_data: bytes = b''
    signature: bytes = b''

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def pack(self) -> bytes:
        """ABI-encode every field except the signature, hashing the dynamic byte fields"""
        return encode(
            [
                'address', 'uint256', 'bytes32', 'bytes32',
                'uint256', 'uint256', 'uint256', 'uint256', 'uint256',
                'bytes32',
            ],
            [
                Web3.to_checksum_address(self.sender),
                self.nonce,
                Web3.keccak(self.init_code),
                Web3.keccak(self.call_data),
                self.call_gas_limit,
                self.verification_gas_limit,
                self.pre_verification_gas,
                self.max_fee_per_gas,
                self.max_priority_fee_per_gas,
                Web3.keccak(self.paymaster_and_data),
            ]
        )


def get_user_operation_hash(user_operation: UserOperation, entry_point: str, chain_id: int) -> bytes:
    """Canonical user operation hash as computed by EntryPoint.getUserOpHash"""
    return bytes(Web3.keccak(encode(
        ['bytes32', 'address', 'uint256'],
        [Web3.keccak(user_operation.pack()), Web3.to_checksum_address(entry_point), chain_id]
    )))


@dataclass(frozen=True)
class Call:
    """A single call made by the smart account"""
    to: str
    value: int
    data: bytes = b''


@dataclass(frozen=True)
class BatchCall:
    """Several zero-value calls made by the smart account in one operation"""
    to: Sequence[str]
    data: Sequence[bytes]


def _to_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    try:
        return bytes.fromhex(data[2:] if data.startswith('0x') else data)
    except ValueError as e:
        raise ValidationError(f"Invalid hex data: {data!r}") from e


def _to_address(address: str) -> str:
    if not is_address(address):
        raise ValidationError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def encode_execute(to: str, value: int, data: Union[bytes, str] = b'') -> bytes:
    """Encode execute(address,uint256,bytes) call data"""
    if value < 0:
        raise ValidationError(f"Call value must not be negative: {value}")
    encoded_params = encode(
        ['address', 'uint256', 'bytes'],
        [_to_address(to), value, _to_bytes(data)]
    )
    return EXECUTE_SELECTOR + encoded_params


def encode_execute_batch(to: Sequence[str], data: Sequence[Union[bytes, str]]) -> bytes:
    """Encode executeBatch(address[],bytes[]) call data"""
    if len(to) != len(data):
        raise ValidationError(
            f"executeBatch needs one data entry per target: {len(to)} targets, {len(data)} data entries"
        )
    encoded_params = encode(
        ['address[]', 'bytes[]'],
        [[_to_address(a) for a in to], [_to_bytes(d) for d in data]]
    )
    logger.debug(f"Encoded executeBatch with {len(to)} calls")
    return EXECUTE_BATCH_SELECTOR + encoded_params


def encode_call(intent: Union[Call, BatchCall]) -> bytes:
    if isinstance(intent, Call):
        return encode_execute(intent.to, intent.value, intent.data)
    return encode_execute_batch(intent.to, intent.data)
