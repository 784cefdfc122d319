"""Ed25519 attestation signing.

The signed message is SHA-256 over::

    round_id (u32 big endian) || wallet (utf-8) || solution hash (32 bytes) || nonce (u64 big endian)

which is the layout the on-chain verifier reconstructs.
"""

from typing import Optional
import base64
import hashlib
import logging
import struct

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519


def attestation_message(round_id: int, wallet: str, solution_hash: str, nonce: int) -> bytes:
    hash_hex = solution_hash[2:] if solution_hash.startswith('0x') else solution_hash
    hash_bytes = bytes.fromhex(hash_hex)
    if len(hash_bytes) != 32:
        raise ValueError('solution hash must be 32 bytes')
    buf = (
        struct.pack('>I', int(round_id))
        + wallet.encode('utf-8')
        + hash_bytes
        + struct.pack('>Q', int(nonce))
    )
    return hashlib.sha256(buf).digest()


class Ed25519AttestationSigner:
    algorithm = 'Ed25519'

    def __init__(self, seed: Optional[bytes] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        if seed:
            self._private_key = ed25519.Ed25519PrivateKey.from_private_bytes(seed)
        else:
            self._private_key = ed25519.Ed25519PrivateKey.generate()
            self.logger.warning('[signer] no signing key configured, using an ephemeral key')
        self._public_key = self._private_key.public_key()
        self._public_key_bytes = self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def from_hex(cls, seed_hex: Optional[str], logger: Optional[logging.Logger] = None):
        seed = bytes.fromhex(seed_hex) if seed_hex else None
        if seed is not None and len(seed) != 32:
            raise ValueError('ATTESTATION_SIGNING_KEY must be 32 bytes of hex')
        return cls(seed=seed, logger=logger)

    @property
    def public_key(self) -> str:
        return self._public_key_bytes.hex()

    def sign(self, round_id: int, wallet: str, solution_hash: str, nonce: int) -> str:
        message = attestation_message(round_id, wallet, solution_hash, nonce)
        return base64.b64encode(self._private_key.sign(message)).decode('ascii')

    def verify(self, round_id: int, wallet: str, solution_hash: str, nonce: int, signature: str) -> bool:
        message = attestation_message(round_id, wallet, solution_hash, nonce)
        try:
            self._public_key.verify(base64.b64decode(signature), message)
            return True
        except (InvalidSignature, ValueError):
            return False
