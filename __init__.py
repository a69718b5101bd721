"""
Smart Account UserOperation Builder

Builds and signs ERC-4337 (EntryPoint v0.6) UserOperations for factory-deployed
smart accounts through an ordered middleware pipeline.
"""

# Main entry point
from smart_account import SmartAccount

# Configuration
from config import SmartAccountConfig

# Individual components for advanced usage
from builder import (
    EstimateGasLimits,
    Middleware,
    MiddlewareContext,
    MiddlewarePipeline,
    SponsorGas,
    UserOperationBuilder,
)
from bundler import BundlerClient, convert_user_operation_to_rpc_format
from chain import ChainClient, SenderAddressLookupFailed, SenderAddressResult
from deployment import DeploymentDescriptor, predict_sender_address
from exceptions import (
    AddressResolutionError,
    AlreadyBuiltError,
    BundlerError,
    ProtocolInvariantViolation,
    UpstreamError,
    UserOperationError,
    ValidationError,
)
from middleware import (
    eoa_signature,
    estimate_creation_gas,
    estimate_user_operation_gas,
    get_gas_price,
    resolve_account,
    verifying_paymaster,
)
from user_operations import (
    BatchCall,
    Call,
    UserOperation,
    encode_call,
    encode_execute,
    encode_execute_batch,
    get_user_operation_hash,
)

__version__ = "1.0.0"

__all__ = [
    "SmartAccount",
    "SmartAccountConfig",
    "UserOperationBuilder",
    "Middleware",
    "MiddlewareContext",
    "MiddlewarePipeline",
    "EstimateGasLimits",
    "SponsorGas",
    "BundlerClient",
    "convert_user_operation_to_rpc_format",
    "ChainClient",
    "SenderAddressResult",
    "SenderAddressLookupFailed",
    "DeploymentDescriptor",
    "predict_sender_address",
    "UserOperationError",
    "AddressResolutionError",
    "ProtocolInvariantViolation",
    "ValidationError",
    "AlreadyBuiltError",
    "UpstreamError",
    "BundlerError",
    "resolve_account",
    "get_gas_price",
    "estimate_creation_gas",
    "estimate_user_operation_gas",
    "verifying_paymaster",
    "eoa_signature",
    "UserOperation",
    "Call",
    "BatchCall",
    "encode_call",
    "encode_execute",
    "encode_execute_batch",
    "get_user_operation_hash",
]
