"""
Envelope encryption gated by access-control conditions.

Each payload gets a fresh 256-bit data key. The data key is wrapped with the
service master key and the policy document is bound to both ciphertexts as
associated data, so a key reference only opens with the exact policy it was
issued under. Before unwrapping, every condition in the policy is evaluated
against the ledger.

Policy schema (version 1)::

    {
      "version": 1,
      "conditions": [
        {
          "conditionType": "solRpc",
          "method": "getBalance",
          "params": ["<wallet address>"],
          "chain": "solana",
          "returnValueTest": {"comparator": ">=", "value": "0"}
        }
      ]
    }
"""

import base64
import json
import logging
import os
from typing import Any, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from app.clients.interfaces import EncryptionService, EncryptionResult, LedgerClient
from app.core.errors import AccessDeniedError, ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

POLICY_VERSION = 1
NONCE_SIZE = 12

COMPARATORS = {
    ">=": lambda a, b: a >= b,
    ">": lambda a, b: a > b,
    "<=": lambda a, b: a <= b,
    "<": lambda a, b: a < b,
    "=": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
}


def build_balance_policy(wallet_address: str, comparator: str = ">=", value: str = "0") -> Dict[str, Any]:
    return {
        "version": POLICY_VERSION,
        "conditions": [
            {
                "conditionType": "solRpc",
                "method": "getBalance",
                "params": [wallet_address],
                "chain": "solana",
                "returnValueTest": {"comparator": comparator, "value": value},
            }
        ],
    }


def _canonical(policy: Dict[str, Any]) -> bytes:
    return json.dumps(policy, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _derive_master_key(secret: str) -> bytes:
    kdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=b"notarization-envelope-v1")
    return kdf.derive(secret.encode("utf-8"))


def _seal(key: bytes, data: bytes, aad: bytes) -> bytes:
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, data, aad)


def _open(key: bytes, blob: bytes, aad: bytes) -> bytes:
    return AESGCM(key).decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], aad)


def validate_policy(policy: Dict[str, Any]):
    if not isinstance(policy, dict) or policy.get("version") != POLICY_VERSION:
        raise ValidationError(f"Unsupported access-control policy version: {policy.get('version') if isinstance(policy, dict) else policy}")
    conditions = policy.get("conditions")
    if not isinstance(conditions, list) or not conditions:
        raise ValidationError("Access-control policy must contain at least one condition")
    for condition in conditions:
        if condition.get("conditionType") != "solRpc" or condition.get("method") != "getBalance":
            raise ValidationError(f"Unsupported access-control condition: {condition.get('conditionType')}/{condition.get('method')}")
        params = condition.get("params")
        if not isinstance(params, list) or len(params) != 1 or not params[0]:
            raise ValidationError("getBalance condition requires exactly one wallet address")
        test = condition.get("returnValueTest") or {}
        if test.get("comparator") not in COMPARATORS:
            raise ValidationError(f"Unsupported comparator: {test.get('comparator')}")
        try:
            int(test.get("value"))
        except (TypeError, ValueError):
            raise ValidationError("returnValueTest.value must be an integer string")


class EnvelopeEncryptionService(EncryptionService):
    def __init__(self, master_secret: Optional[str], ledger: LedgerClient):
        self._master_key = _derive_master_key(master_secret) if master_secret else None
        self.ledger = ledger

        if not master_secret:
            logger.warning("ENCRYPTION_MASTER_KEY not configured; encryption endpoints will fail")

    def _key(self) -> bytes:
        if self._master_key is None:
            raise ExternalServiceError("Encryption service is not configured")
        return self._master_key

    async def encrypt(self, data: bytes, policy: Dict[str, Any]) -> EncryptionResult:
        validate_policy(policy)
        master = self._key()
        aad = _canonical(policy)

        data_key = AESGCM.generate_key(bit_length=256)
        ciphertext = _seal(data_key, data, aad)
        wrapped = _seal(master, data_key, aad)

        key_ref = base64.urlsafe_b64encode(
            json.dumps({"v": POLICY_VERSION, "wrapped": base64.b64encode(wrapped).decode("ascii")}).encode("utf-8")
        ).decode("ascii")
        logger.info(f"Encrypted {len(data)} bytes under {len(policy['conditions'])} access condition(s)")
        return EncryptionResult(ciphertext=ciphertext, key_ref=key_ref, policy=policy)

    async def _check_conditions(self, policy: Dict[str, Any]):
        for condition in policy["conditions"]:
            address = condition["params"][0]
            balance = await self.ledger.get_balance(address)
            test = condition["returnValueTest"]
            if not COMPARATORS[test["comparator"]](balance, int(test["value"])):
                logger.warning(f"Access condition failed for {address[:6]}...: balance {balance} {test['comparator']} {test['value']} is false")
                raise AccessDeniedError("Access-control conditions are not satisfied")

    async def decrypt(self, ciphertext: bytes, key_ref: str, policy: Dict[str, Any]) -> bytes:
        validate_policy(policy)
        master = self._key()

        try:
            ref = json.loads(base64.urlsafe_b64decode(key_ref.encode("ascii")))
            wrapped = base64.b64decode(ref["wrapped"])
        except (ValueError, KeyError, TypeError) as e:
            raise ValidationError(f"Malformed key reference: {e}") from e
        if ref.get("v") != POLICY_VERSION:
            raise ValidationError(f"Unsupported key reference version: {ref.get('v')}")

        await self._check_conditions(policy)

        aad = _canonical(policy)
        try:
            data_key = _open(master, wrapped, aad)
            return _open(data_key, ciphertext, aad)
        except InvalidTag:
            # tag mismatch covers a tampered ciphertext and a policy other than the one encrypted under
            raise AccessDeniedError("Ciphertext, key reference and policy do not match")
