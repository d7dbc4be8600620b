"""
Base Schema Models for zksync-signer

This module defines the base classes that the EIP-712 schema models inherit
from. It provides the foundation for type safety, validation and consistent,
deterministic serialization.

Core Classes:
    - CanonicalModel: RFC8785-compliant Pydantic base model
    - FrozenModel: Immutable CanonicalModel for values shared across signing calls
    - BaseSignature: Abstract signature component model

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    RFC8785-compliant Pydantic base model with canonical JSON serialization.

    Byte fields are rendered as hex in JSON output so that models holding
    calldata or signatures serialise deterministically.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        canonical_json = model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="hex")

    def to_canonical_json(self) -> str:
        """
        Convert model to RFC8785-compliant canonical JSON string.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields.
        """
        return self.model_dump()


class FrozenModel(CanonicalModel):
    """
    Immutable canonical model.

    Instances cannot be modified after construction; derive updated copies
    with ``model_copy(update=...)``. This makes them safe to share between
    concurrent signing calls.
    """

    model_config = ConfigDict(populate_by_name=True, ser_json_bytes="hex", frozen=True)


class BaseSignature(FrozenModel, ABC):
    """
    Abstract base class for signature components.

    Attributes:
        signature_type: The signing scheme (e.g. "ECDSA")

    Methods:
        validate_format: Check that the components are well formed
        to_bytes: Serialised signature bytes
    """

    signature_type: str = Field(..., description="Type of signature (e.g. ECDSA)")

    def validate_format(self) -> bool:
        """
        Validate the signature format.

        Returns:
            bool: True if the signature format is valid.

        Raises:
            ValueError: If signature format is invalid with descriptive message.
        """
        return True

    @abstractmethod
    def to_bytes(self) -> bytes:
        """Serialised signature bytes."""
