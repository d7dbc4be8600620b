from .exceptions import (
    SigningError,
    TypedDataError,
    CyclicTypeError,
    UnknownTypeError,
    EncodingError,
    TransactionError,
    MissingChainIdError,
    MissingRequiredFieldError,
    InsufficientKeysError,
    ConfigurationError,
)

__all__ = [
    "SigningError",
    "TypedDataError",
    "CyclicTypeError",
    "UnknownTypeError",
    "EncodingError",
    "TransactionError",
    "MissingChainIdError",
    "MissingRequiredFieldError",
    "InsufficientKeysError",
    "ConfigurationError",
]
