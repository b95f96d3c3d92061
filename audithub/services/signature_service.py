"""
AuditHub - Starknet Signature Verification

Account abstraction means a signature can only be checked by the account
contract itself, so verification is a read-only ``starknet_call`` of
``is_valid_signature(hash, signature)`` against a Starknet JSON-RPC node.

The node is picked at random from ``STARKNET_RPC_URLS`` per call.
"""

import logging
import random
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from audithub.config import Settings, get_settings
from audithub.utils.error_handling import (
    ErrorCode,
    StarknetRPCException,
    ValidationException,
)

logger = logging.getLogger(__name__)


# sn_keccak("is_valid_signature")
IS_VALID_SIGNATURE_SELECTOR = "0x28420862938116cb3bbdbedee07451ccc54d4e9412dbef71142ad1980a30941"

# Cairo 1 accounts answer 'VALID' as a short string, Cairo 0 accounts answer 1
VALID_RESULTS = (1, 0x56414C4944)

SignData = Union[str, int, Dict[str, Any]]


def parse_signature(signed_message: Union[str, Sequence[Any]]) -> List[str]:
    """Accept a list of felts or a comma separated string and return hex felts."""
    if isinstance(signed_message, str):
        parts = [part.strip() for part in signed_message.split(",") if part.strip()]
    else:
        parts = list(signed_message)
    if not parts:
        raise ValidationException("Signature is empty", field="signedMessage")

    felts = []
    for part in parts:
        try:
            value = int(part, 0) if isinstance(part, str) else int(part)
        except (TypeError, ValueError):
            raise ValidationException(
                "Signature must be a list of felts",
                field="signedMessage",
                code=ErrorCode.INVALID_SIGN_DATA,
            )
        felts.append(hex(value))
    return felts


def compute_message_hash(sign_data: SignData, account_address: str) -> int:
    """
    Hash of the signed message.

    A hex string or int is taken as a pre-computed hash. A dict is treated
    as SNIP-12 typed data and hashed for ``account_address``.
    """
    if isinstance(sign_data, bool):
        raise ValidationException("signData is not a message hash", field="signData", code=ErrorCode.INVALID_SIGN_DATA)
    if isinstance(sign_data, int):
        return sign_data
    if isinstance(sign_data, str):
        try:
            return int(sign_data, 16)
        except ValueError:
            raise ValidationException(
                "signData must be a hex message hash or typed data",
                field="signData",
                code=ErrorCode.INVALID_SIGN_DATA,
            )
    if isinstance(sign_data, dict):
        # Typed data support ships with the optional starknet extra
        from starknet_py.utils.typed_data import TypedData

        try:
            typed_data = TypedData.from_dict(sign_data)
            return typed_data.message_hash(int(account_address, 16))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationException(
                f"Invalid typed data: {e}",
                field="signData",
                code=ErrorCode.INVALID_SIGN_DATA,
            )
    raise ValidationException(
        "signData must be a hex message hash or typed data",
        field="signData",
        code=ErrorCode.INVALID_SIGN_DATA,
    )


class SignatureVerifier(ABC):
    """Answers whether ``signature`` over ``sign_data`` was made by ``address``."""

    @abstractmethod
    async def verify(
        self,
        address: str,
        sign_data: SignData,
        signature: Union[str, Sequence[Any]],
    ) -> bool:
        ...


class StarknetSignatureVerifier(SignatureVerifier):
    """Verifier backed by a Starknet JSON-RPC node."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    def _pick_node(self) -> str:
        urls = self.settings.starknet_rpc_urls_list
        if not urls:
            raise StarknetRPCException("no RPC node configured")
        return random.choice(urls)

    def build_call(self, address: str, message_hash: int, signature: List[str]) -> Dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "starknet_call",
            "params": {
                "request": {
                    "contract_address": address,
                    "entry_point_selector": IS_VALID_SIGNATURE_SELECTOR,
                    "calldata": [hex(message_hash), hex(len(signature)), *signature],
                },
                "block_id": "latest",
            },
        }

    async def verify(
        self,
        address: str,
        sign_data: SignData,
        signature: Union[str, Sequence[Any]],
    ) -> bool:
        felts = parse_signature(signature)
        message_hash = compute_message_hash(sign_data, address)
        payload = self.build_call(address, message_hash, felts)
        node_url = self._pick_node()

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.starknet_rpc_timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(node_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"Starknet RPC timeout at {node_url}: {e}")
            raise StarknetRPCException("node timed out", original_error=e)
        except httpx.HTTPError as e:
            logger.error(f"Starknet RPC request to {node_url} failed: {e}")
            raise StarknetRPCException("node unreachable", original_error=e)

        if response.status_code != 200:
            logger.error(f"Starknet RPC returned HTTP {response.status_code} from {node_url}")
            raise StarknetRPCException(f"node returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise StarknetRPCException("node returned invalid JSON", original_error=e)

        # Accounts revert on a bad signature, which surfaces as a JSON-RPC error
        if "error" in body:
            logger.info(f"Signature rejected for {address}: {body['error']}")
            return False

        result = body.get("result") or []
        if not result:
            return False
        try:
            value = int(result[0], 16) if isinstance(result[0], str) else int(result[0])
        except (TypeError, ValueError):
            return False
        return value in VALID_RESULTS
