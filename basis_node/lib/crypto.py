"""
Cryptographic utilities for the Basis witness node.

secp256k1 signing and recovery go through coincurve, keccak-256 and EIP-55
checksums through eth_utils. Signatures are over the raw 32-byte hash with
no message prefix, encoded as r || s || v with v in {27, 28}.

SECURITY: Key validation FAILS CLOSED - a malformed key raises before any
signing or state mutation happens.
"""
import re
import logging

from coincurve import PrivateKey, PublicKey
from eth_utils import keccak, to_checksum_address

from ..errors import ConfigurationError

logger = logging.getLogger("crypto")

HEX32_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

SIGNATURE_METHOD = "ecdsa-secp256k1"


def is_hex32(value: str) -> bool:
    """True for 0x + 64 hex chars (tx hashes, private keys, keccak digests)."""
    return bool(value) and HEX32_PATTERN.fullmatch(value) is not None


def is_address(value: str) -> bool:
    return bool(value) and ADDRESS_PATTERN.fullmatch(value) is not None


def keccak_hex(data: str | bytes) -> str:
    """Compute keccak-256 and return 0x-prefixed hex."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return "0x" + keccak(data).hex()


def normalize_private_key(private_key: str | None) -> str:
    """
    Validate a signing key and return it in 0x-prefixed form.

    A key without the 0x prefix is accepted and prefixed. Anything that is
    not then exactly 0x + 64 hex chars raises ConfigurationError.
    """
    if not private_key:
        raise ConfigurationError("BASIS_PRIVATE_KEY is missing. Cannot notarize.")

    key = private_key if private_key.startswith("0x") else f"0x{private_key}"

    if len(key) != 66:
        raise ConfigurationError(
            f"BASIS_PRIVATE_KEY has invalid format. Expected 66 characters "
            f"(0x + 64 hex), got {len(key)}."
        )
    if not is_hex32(key):
        raise ConfigurationError(
            "BASIS_PRIVATE_KEY contains invalid characters. "
            "Must be a valid hex string (0-9, a-f, A-F)."
        )
    return key


def public_key_to_address(public_key: PublicKey) -> str:
    """Ethereum address: last 20 bytes of keccak(uncompressed X || Y)."""
    raw = public_key.format(compressed=False)[1:]
    return to_checksum_address("0x" + keccak(raw)[-20:].hex())


def load_private_key(private_key: str | None) -> PrivateKey:
    key = normalize_private_key(private_key)
    try:
        return PrivateKey(bytes.fromhex(key[2:]))
    except ValueError as e:
        # Zero or >= curve order
        raise ConfigurationError(f"BASIS_PRIVATE_KEY is not a valid secp256k1 key: {e}")


def sign_hash(message_hash: bytes, key: PrivateKey) -> str:
    """Sign a 32-byte digest directly and return 0x r||s||v hex."""
    if len(message_hash) != 32:
        raise ValueError(f"Expected 32-byte hash, got {len(message_hash)}")

    sig = key.sign_recoverable(message_hash, hasher=None)
    r_s, recovery_id = sig[:64], sig[64]
    return "0x" + (r_s + bytes([recovery_id + 27])).hex()


def recover_address(hash_hex: str, signature_hex: str) -> str:
    """
    Recover the signer address from a raw hash and an r||s||v signature.

    Raises ValueError on malformed input.
    """
    if not is_hex32(hash_hex):
        raise ValueError("Hash must be 0x + 64 hex chars")

    sig_clean = signature_hex[2:] if signature_hex.startswith("0x") else signature_hex
    sig_bytes = bytes.fromhex(sig_clean)
    if len(sig_bytes) != 65:
        raise ValueError(f"Invalid signature length: {len(sig_bytes)} (expected 65)")

    v = sig_bytes[64]
    recovery_id = v - 27 if v >= 27 else v
    if recovery_id not in (0, 1):
        raise ValueError(f"Invalid recovery id: {v}")

    public_key = PublicKey.from_signature_and_message(
        sig_bytes[:64] + bytes([recovery_id]),
        bytes.fromhex(hash_hex[2:]),
        hasher=None,
    )
    return public_key_to_address(public_key)


def verify_hash_signature(hash_hex: str, signature_hex: str, expected_address: str) -> tuple[bool, str]:
    """
    Check that signature over hash_hex recovers to expected_address.

    Returns:
        Tuple of (is_valid, message)
    """
    try:
        recovered = recover_address(hash_hex, signature_hex)
    except ValueError as e:
        return False, f"Invalid hash or signature format: {e}"

    if recovered.lower() == expected_address.lower():
        return True, "Signature verified"
    return False, f"Signer mismatch: expected {expected_address}, got {recovered}"
