"""
Paymaster Parameter Codec

Encodes the ``paymasterInput`` bytes for the two ``IPaymasterFlow`` entry
points and wraps them, together with the paymaster address, into
``PaymasterParams``:

    general(bytes)                               -> selector || abi(innerInput)
    approvalBased(address,uint256,bytes)         -> selector || abi(token, minimalAllowance, innerInput)

The input variant is a pydantic discriminated union keyed on ``type``, so a
plain dict such as ``{"type": "General", "innerInput": "0x"}`` is accepted
wherever a model is.
"""

from typing import Annotated, Any, Literal, Mapping, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import function_signature_to_4byte_selector, is_address, to_checksum_address
from pydantic import Field, TypeAdapter, ValidationError, field_validator

from ..engine.exceptions import EncodingError
from ..schemas.bases import FrozenModel
from ..utils import as_bytes, as_int
from .abis import get_paymaster_flow_abi  # noqa: F401
from .schemas import PaymasterParams

GENERAL_SIGNATURE = "general(bytes)"
APPROVAL_BASED_SIGNATURE = "approvalBased(address,uint256,bytes)"

GENERAL_SELECTOR: bytes = function_signature_to_4byte_selector(GENERAL_SIGNATURE)
APPROVAL_BASED_SELECTOR: bytes = function_signature_to_4byte_selector(APPROVAL_BASED_SIGNATURE)


class GeneralPaymasterInput(FrozenModel):
    """
    Input of the ``general`` paymaster flow.

    Attributes:
        type: Discriminator, always ``"General"``.
        inner_input: Opaque bytes forwarded to the paymaster (``innerInput``).
    """

    type: Literal["General"] = "General"
    inner_input: bytes = Field(default=b"", alias="innerInput")

    @field_validator("inner_input", mode="before")
    @classmethod
    def _check_inner_input(cls, value: Any) -> bytes:
        return as_bytes(value)


class ApprovalBasedPaymasterInput(FrozenModel):
    """
    Input of the ``approvalBased`` paymaster flow.

    Attributes:
        type: Discriminator, always ``"ApprovalBased"``.
        token: ERC-20 token the paymaster is approved to spend.
        minimal_allowance: Minimum allowance required (``minimalAllowance``).
        inner_input: Opaque bytes forwarded to the paymaster (``innerInput``).
    """

    type: Literal["ApprovalBased"] = "ApprovalBased"
    token: str
    minimal_allowance: int = Field(..., alias="minimalAllowance")
    inner_input: bytes = Field(default=b"", alias="innerInput")

    @field_validator("token", mode="before")
    @classmethod
    def _check_token(cls, value: Any) -> str:
        if not isinstance(value, str) or not is_address(value):
            raise ValueError(f"Invalid token address: {value!r}")
        return to_checksum_address(value)

    @field_validator("minimal_allowance", mode="before")
    @classmethod
    def _check_allowance(cls, value: Any) -> int:
        allowance = as_int(value)
        if allowance < 0 or allowance >= 2 ** 256:
            raise ValueError(f"minimalAllowance out of uint256 range: {allowance}")
        return allowance

    @field_validator("inner_input", mode="before")
    @classmethod
    def _check_inner_input(cls, value: Any) -> bytes:
        return as_bytes(value)


PaymasterInput = Annotated[
    Union[GeneralPaymasterInput, ApprovalBasedPaymasterInput],
    Field(discriminator="type"),
]

_PAYMASTER_INPUT = TypeAdapter(PaymasterInput)

PaymasterInputLike = Union[GeneralPaymasterInput, ApprovalBasedPaymasterInput, Mapping[str, Any]]


def as_paymaster_input(value: PaymasterInputLike) -> Union[GeneralPaymasterInput, ApprovalBasedPaymasterInput]:
    """Validate a dict or model into one of the paymaster input variants."""
    if isinstance(value, (GeneralPaymasterInput, ApprovalBasedPaymasterInput)):
        return value
    try:
        return _PAYMASTER_INPUT.validate_python(value)
    except ValidationError as exc:
        raise EncodingError(f"Invalid paymaster input: {exc}") from exc


def get_general_paymaster_input(value: PaymasterInputLike) -> bytes:
    """
    Encode a ``general(bytes)`` call.

    Example:
        get_general_paymaster_input({"type": "General", "innerInput": b""}).hex()
        # '8c5a3445' followed by the ABI encoding of empty bytes
    """
    params = as_paymaster_input(value)
    if not isinstance(params, GeneralPaymasterInput):
        raise EncodingError(f"Expected General paymaster input, got {params.type}")
    return GENERAL_SELECTOR + encode(["bytes"], [params.inner_input])


def get_approval_based_paymaster_input(value: PaymasterInputLike) -> bytes:
    """Encode an ``approvalBased(address,uint256,bytes)`` call."""
    params = as_paymaster_input(value)
    if not isinstance(params, ApprovalBasedPaymasterInput):
        raise EncodingError(f"Expected ApprovalBased paymaster input, got {params.type}")
    try:
        encoded = encode(
            ["address", "uint256", "bytes"],
            [params.token, params.minimal_allowance, params.inner_input],
        )
    except AbiEncodingError as exc:
        raise EncodingError(f"Cannot encode approval-based paymaster input: {exc}") from exc
    return APPROVAL_BASED_SELECTOR + encoded


def get_paymaster_params(paymaster_address: str, value: PaymasterInputLike) -> PaymasterParams:
    """
    Build ``PaymasterParams`` for ``paymaster_address``, dispatching on the
    input's ``type``.

    Raises:
        EncodingError: Malformed input or invalid paymaster address.
    """
    params = as_paymaster_input(value)
    if isinstance(params, GeneralPaymasterInput):
        paymaster_input = get_general_paymaster_input(params)
    else:
        paymaster_input = get_approval_based_paymaster_input(params)
    try:
        return PaymasterParams(paymaster=paymaster_address, paymasterInput=paymaster_input)
    except ValidationError as exc:
        raise EncodingError(f"Invalid paymaster address: {paymaster_address!r}") from exc


def decode_paymaster_input(data: Union[bytes, str]) -> Union[GeneralPaymasterInput, ApprovalBasedPaymasterInput]:
    """
    Decode ``paymasterInput`` bytes back into the input variant.

    Raises:
        EncodingError: Unknown selector or malformed ABI payload.
    """
    try:
        raw = as_bytes(data)
    except ValueError as exc:
        raise EncodingError(f"Invalid paymaster input bytes: {exc}") from exc

    selector, payload = raw[:4], raw[4:]
    try:
        if selector == GENERAL_SELECTOR:
            (inner_input,) = decode(["bytes"], payload)
            return GeneralPaymasterInput(innerInput=inner_input)
        if selector == APPROVAL_BASED_SELECTOR:
            token, allowance, inner_input = decode(["address", "uint256", "bytes"], payload)
            return ApprovalBasedPaymasterInput(
                token=token, minimalAllowance=allowance, innerInput=inner_input
            )
    except DecodingError as exc:
        raise EncodingError(f"Malformed paymaster input: {exc}") from exc
    raise EncodingError(f"Unknown paymaster flow selector: 0x{selector.hex()}")

