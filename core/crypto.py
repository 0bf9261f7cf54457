"""
core/crypto.py
Password hashing and secret encryption compatible with the dashd server.

Encrypted payload layout: salt (8 bytes) | iv (16 bytes) | AES-256-CFB ciphertext.
The AES key is PBKDF2-HMAC-SHA256(secret, salt, 10000 iterations, 32 bytes).
"""

from __future__ import annotations

import hashlib
import os
import secrets
import string

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

PBKDF2_ITERATIONS = 10000
PASSWORD_HASH_BYTES = 50
SALT_LENGTH = 8
IV_LENGTH = 16
KEY_LENGTH = 32

_ALPHANUM = string.ascii_letters + string.digits


def random_string(length: int) -> str:
    return "".join(secrets.choice(_ALPHANUM) for _ in range(length))


def encode_password(password: str, salt: str) -> str:
    """Hex PBKDF2 hash stored in the user table."""
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"),
                                 salt.encode("utf-8"), PBKDF2_ITERATIONS,
                                 dklen=PASSWORD_HASH_BYTES)
    return digest.hex()


def _derive_key(secret: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt,
                               PBKDF2_ITERATIONS, dklen=KEY_LENGTH)


def encrypt(payload: bytes, secret: str) -> bytes:
    salt = random_string(SALT_LENGTH).encode("ascii")
    iv = os.urandom(IV_LENGTH)
    encryptor = Cipher(algorithms.AES(_derive_key(secret, salt)), modes.CFB(iv)).encryptor()
    return salt + iv + encryptor.update(payload) + encryptor.finalize()


def decrypt(payload: bytes, secret: str) -> bytes:
    if len(payload) < SALT_LENGTH + IV_LENGTH:
        raise ValueError("unable to decrypt: payload too short")
    salt = payload[:SALT_LENGTH]
    iv = payload[SALT_LENGTH:SALT_LENGTH + IV_LENGTH]
    decryptor = Cipher(algorithms.AES(_derive_key(secret, salt)), modes.CFB(iv)).decryptor()
    return decryptor.update(payload[SALT_LENGTH + IV_LENGTH:]) + decryptor.finalize()
