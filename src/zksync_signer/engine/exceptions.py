"""
Exception and Error Definitions Module

Defines the exception hierarchy for typed-data hashing, transaction digest
computation, signing and paymaster encoding. All exceptions inherit from
SigningError for unified exception handling.

Every error is terminal for the signing attempt that raised it: nothing in
this package retries a computation or substitutes a default value for a
rejected input.

Exception Hierarchy:
    SigningError (root)
    ├── TypedDataError
    │   ├── CyclicTypeError
    │   ├── UnknownTypeError
    │   └── EncodingError
    ├── TransactionError
    │   ├── MissingChainIdError
    │   └── MissingRequiredFieldError
    ├── InsufficientKeysError
    └── ConfigurationError
"""

from typing import Optional


class SigningError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Catch this class to handle any failure originating from this package.
    """
    pass


class TypedDataError(SigningError):
    """
    Base exception for EIP-712 schema and value problems.

    Parent class for every error raised while resolving a type schema or
    encoding a value against it.
    """
    pass


class CyclicTypeError(TypedDataError):
    """
    Raised when a struct type references itself through non-array fields.

    This includes scenarios such as:
    - A struct with a field of its own type (``A{A a}``)
    - Mutual nesting (``A{B b}``, ``B{A a}``)

    Attributes:
        type_name: The type at which the cycle was closed
    """

    def __init__(self, type_name: str, message: Optional[str] = None):
        self.type_name = type_name
        super().__init__(message or f"circular type reference to {type_name!r}")


class UnknownTypeError(TypedDataError):
    """
    Raised when a field names a type that is neither primitive nor defined
    in the schema.

    Attributes:
        type_name: The unresolved type name
    """

    def __init__(self, type_name: str, message: Optional[str] = None):
        self.type_name = type_name
        super().__init__(message or f"unknown type {type_name!r}")


class EncodingError(TypedDataError):
    """
    Raised when a value cannot be encoded against its declared type.

    This includes scenarios such as:
    - A string supplied where an address is expected
    - Integer out of range for ``uintN`` / ``intN``
    - Wrong length for ``bytesN`` or fixed-size arrays
    - Missing value for a declared field
    - Malformed paymaster input
    """
    pass


class TransactionError(SigningError):
    """
    Base exception for transaction envelope problems.
    """
    pass


class MissingChainIdError(TransactionError):
    """
    Raised when a transaction digest is requested without a chain id.

    The chain id is never defaulted: a digest without chain binding could
    be replayed on another network.
    """

    def __init__(self, message: str = "Transaction chainId isn't set!"):
        super().__init__(message)


class MissingRequiredFieldError(TransactionError):
    """
    Raised when a mandatory transaction field (``to``, ``from``) is absent.

    Attributes:
        field: Name of the missing field
    """

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Transaction field {field!r} is required")


class InsufficientKeysError(SigningError):
    """
    Raised when a multi-key signing strategy receives no private keys.
    """
    pass


class ConfigurationError(SigningError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - No provider available for a step that needs network data
    - Missing RPC URL
    - Missing private key
    """
    pass
