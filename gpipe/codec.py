import base64
import binascii
import logging
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from gpipe.errors import DecryptionError
from gpipe.keystore import KeyStore

logger = logging.getLogger(__name__)

OAEP = padding.OAEP(
    mgf=padding.MGF1(algorithm=hashes.SHA256()),
    algorithm=hashes.SHA256(),
    label=None,
)


@dataclass
class SecretCodec:
    """Encrypts short strings with the public key and decrypts them with the
    private key held by a KeyStore. Ciphertext is base64 text."""

    keystore: KeyStore

    def encrypt(self, plaintext: str) -> str:
        public_key = self.keystore.load_public_key()
        ciphertext = public_key.encrypt(plaintext.encode("utf-8"), OAEP)
        return base64.b64encode(ciphertext).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        try:
            private_key = self.keystore.load_private_key()
        except (OSError, ValueError) as e:
            raise DecryptionError(f"Unable to load private key: {e}") from e
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError, TypeError) as e:
            raise DecryptionError("Ciphertext is not valid base64") from e
        try:
            plaintext = private_key.decrypt(raw, OAEP).decode("utf-8")
        except ValueError as e:
            logger.error("Decryption failed, key pair does not match the stored secret")
            raise DecryptionError("Ciphertext does not match the local key pair") from e
        return plaintext
