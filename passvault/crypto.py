"""
Cryptographic operations for the password store.

SECURITY NOTICE:
Secrets are protected with AES-128-CBC under one static key. CBC without a
MAC gives confidentiality only; a tampered token is detected solely through
its padding or UTF-8 decoding failing. There is no key derivation or
rotation. Treat the default key as public.
"""

import os
import base64
import binascii
import logging
from typing import Optional

import keyring
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.backends import default_backend

from . import config
from .exceptions import CryptoFailure

logger = logging.getLogger(__name__)


class StaticKeyProvider:
    """Supplies a fixed key, by default the built-in one."""

    def __init__(self, key: bytes = config.DEFAULT_SECRET_KEY):
        self._key = key

    def get_key(self) -> bytes:
        return self._key


class EnvironmentKeyProvider:
    """Reads the key from an environment variable as UTF-8 text."""

    def __init__(self, variable: str = config.KEY_ENV_VAR):
        self.variable = variable

    def get_key(self) -> bytes:
        value = os.environ.get(self.variable)
        if not value:
            raise RuntimeError(f"Environment variable {self.variable} is not set")
        return value.encode('utf-8')


class KeyringKeyProvider:
    """Reads the key from the OS keyring."""

    def __init__(self, service: str = config.KEYRING_SERVICE,
                 username: str = config.KEYRING_USERNAME):
        self.service = service
        self.username = username

    def get_key(self) -> bytes:
        value = keyring.get_password(self.service, self.username)
        if not value:
            raise RuntimeError(
                f"No key stored in keyring for service '{self.service}'. "
                f"Store a {config.KEY_SIZE}-character key with: "
                f"keyring set {self.service} {self.username}"
            )
        return value.encode('utf-8')


def default_key_provider():
    """Use the environment key when it is set, otherwise the built-in key."""
    if os.environ.get(config.KEY_ENV_VAR):
        return EnvironmentKeyProvider()
    logger.warning("Using the built-in static encryption key; set "
                   f"{config.KEY_ENV_VAR} or use the keyring for a private key.")
    return StaticKeyProvider()


class SecretCipher:
    """Encrypts and decrypts single secret strings with AES-128-CBC."""

    def __init__(self, key_provider=None):
        """
        Initialize the cipher.

        Args:
            key_provider: Object with a get_key() method returning the raw key.
                Defaults to default_key_provider().

        Raises:
            ValueError: If the key is not exactly KEY_SIZE bytes
        """
        self.backend = default_backend()
        provider = key_provider if key_provider is not None else default_key_provider()
        key = provider.get_key()
        if len(key) != config.KEY_SIZE:
            raise ValueError(
                f"Encryption key must be {config.KEY_SIZE} bytes, got {len(key)}"
            )
        self._key = key

    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a secret.

        Args:
            plaintext: Text to protect; may be empty

        Returns:
            Base64 text of IV followed by the ciphertext
        """
        iv = os.urandom(config.IV_SIZE)
        padder = padding.PKCS7(config.BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext.encode('utf-8')) + padder.finalize()

        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv), backend=self.backend).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return base64.b64encode(iv + ciphertext).decode('ascii')

    def decrypt(self, token: Optional[str]) -> str:
        """
        Decrypt a token produced by encrypt().

        Args:
            token: Base64 text of IV followed by the ciphertext

        Returns:
            The plaintext secret

        Raises:
            CryptoFailure: If the token is malformed or does not decrypt cleanly
        """
        if not token:
            raise CryptoFailure("Empty token")
        try:
            combined = base64.b64decode(token.encode('ascii'), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise CryptoFailure(f"Token is not valid base64: {e}") from e

        block_bytes = config.BLOCK_SIZE_BITS // 8
        if len(combined) < config.IV_SIZE + block_bytes:
            raise CryptoFailure(f"Token too short: {len(combined)} bytes")
        iv, ciphertext = combined[:config.IV_SIZE], combined[config.IV_SIZE:]
        if len(ciphertext) % block_bytes:
            raise CryptoFailure("Ciphertext is not a whole number of blocks")

        decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv), backend=self.backend).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(config.BLOCK_SIZE_BITS).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode('utf-8')
        except ValueError as e:
            # UnicodeDecodeError is a ValueError too
            raise CryptoFailure(f"Token did not decrypt cleanly: {e}") from e
