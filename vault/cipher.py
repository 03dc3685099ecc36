"""Chunk encryption service using AES-256-GCM."""

import os
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from common.constants import KEY_SIZE_BYTES, MAX_CHUNK_INDEX, NONCE_SEED_SIZE_BYTES, NONCE_SIZE_BYTES
from common.exceptions import AuthenticationFailure, CryptoError


def generate_key_material() -> Tuple[bytes, bytes]:
    """
    Generate the per-file key and nonce seed.

    Returns:
        (32-byte AES key, 8-byte nonce seed)
    """
    return AESGCM.generate_key(bit_length=KEY_SIZE_BYTES * 8), os.urandom(NONCE_SEED_SIZE_BYTES)


def derive_nonce(nonce_seed: bytes, index: int) -> bytes:
    """
    Build the 96-bit GCM nonce for chunk `index`: seed || big-endian 32-bit index.

    Distinct indices always give distinct nonces under the same seed.
    """
    if not isinstance(nonce_seed, (bytes, bytearray)) or len(nonce_seed) != NONCE_SEED_SIZE_BYTES:
        raise CryptoError(f"Nonce seed must be {NONCE_SEED_SIZE_BYTES} bytes")
    if not isinstance(index, int) or not 0 <= index <= MAX_CHUNK_INDEX:
        raise CryptoError(f"Chunk index {index!r} out of range for nonce derivation")
    nonce = bytes(nonce_seed) + index.to_bytes(NONCE_SIZE_BYTES - NONCE_SEED_SIZE_BYTES, "big")
    return nonce


class CipherEngine:
    """
    Stateless authenticated encryption of chunk payloads.

    The caller holds the key material; every chunk is sealed under its own
    nonce derived from the file's seed and the chunk index, so chunks cannot
    be swapped or reordered without failing authentication.
    """

    @staticmethod
    def _aead(key: bytes) -> AESGCM:
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE_BYTES:
            raise CryptoError(f"Encryption key must be {KEY_SIZE_BYTES} bytes")
        return AESGCM(bytes(key))

    def encrypt_chunk(self, key: bytes, nonce_seed: bytes, index: int, plaintext: bytes) -> bytes:
        """
        Encrypt one chunk.

        Args:
            key: 32-byte file key
            nonce_seed: 8-byte file nonce seed
            index: Chunk index
            plaintext: Chunk bytes

        Returns:
            Ciphertext with the 16-byte GCM tag appended

        Raises:
            CryptoError: If key, seed or index are malformed
        """
        aead = self._aead(key)
        nonce = derive_nonce(nonce_seed, index)
        return aead.encrypt(nonce, bytes(plaintext), None)

    def decrypt_chunk(self, key: bytes, nonce_seed: bytes, index: int, ciphertext: bytes) -> bytes:
        """
        Decrypt and authenticate one chunk.

        Raises:
            AuthenticationFailure: If the ciphertext was altered or key/seed/index do not match
            CryptoError: If key, seed or index are malformed
        """
        aead = self._aead(key)
        nonce = derive_nonce(nonce_seed, index)
        try:
            return aead.decrypt(nonce, bytes(ciphertext), None)
        except InvalidTag as e:
            raise AuthenticationFailure(f"Chunk {index} failed authentication") from e
