"""
Exceptions raised while building and submitting user operations
"""

from typing import Optional


class UserOperationError(Exception):
    """Base exception for smart account user operation errors"""
    pass


class AddressResolutionError(UserOperationError):
    """Raised when getSenderAddress reverted without revealing an address"""
    pass


class ProtocolInvariantViolation(UserOperationError):
    """Raised when the entry point behaves outside the ERC-4337 protocol"""
    pass


class ValidationError(UserOperationError):
    """Raised when a request is rejected before any network call is made"""
    pass


class AlreadyBuiltError(ValidationError):
    """Raised when a consumed builder is configured or built again"""
    pass


class UpstreamError(UserOperationError):
    """Raised when an external collaborator fails during a middleware step"""

    def __init__(self, message: str, step: Optional[str] = None):
        self.step = step
        super().__init__(message)


class BundlerError(UpstreamError):
    """Raised when the bundler or paymaster returns an error response"""

    def __init__(self, message: str, code: Optional[int] = None, step: Optional[str] = None):
        self.code = code
        super().__init__(message, step=step)
