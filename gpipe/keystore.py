import logging
import os
import tempfile
from dataclasses import dataclass
from typing import List, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

logger = logging.getLogger(__name__)

PRIVATE_KEY_FILE = "private.pem"
PUBLIC_KEY_FILE = "public.pem"
KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


def write_temp(directory: str, data: bytes, mode: int = 0o600) -> str:
    """Write data to a new temporary file in directory and return its path."""
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".tmp_")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
    except BaseException:
        os.remove(tmp)
        raise
    return tmp


def atomic_write(path: str, data: bytes, mode: int = 0o600) -> None:
    """Replace path with data so readers never see a partial file."""
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    tmp = write_temp(directory, data, mode)
    try:
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


@dataclass
class KeyStore:
    directory: str

    @property
    def private_path(self) -> str:
        return os.path.join(self.directory, PRIVATE_KEY_FILE)

    @property
    def public_path(self) -> str:
        return os.path.join(self.directory, PUBLIC_KEY_FILE)

    def exists(self) -> bool:
        return os.path.isfile(self.private_path) and os.path.isfile(self.public_path)

    def generate_key_pair(self) -> None:
        """Create a new RSA key pair, overwriting any existing one.

        Both halves are staged as temporary files and only renamed into
        place once both were written, so a failure never leaves a
        mismatched pair behind."""
        os.makedirs(self.directory, exist_ok=True)
        private_key = rsa.generate_private_key(
            public_exponent=PUBLIC_EXPONENT,
            key_size=KEY_SIZE,
        )
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        public_pem = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        previous = self.read_private_pem()
        staged: List[str] = []
        try:
            staged.append(write_temp(self.directory, private_pem, 0o600))
            staged.append(write_temp(self.directory, public_pem, 0o644))
            os.replace(staged[0], self.private_path)
            try:
                os.replace(staged[1], self.public_path)
            except OSError:
                self.restore_private_pem(previous)
                raise
        finally:
            for tmp in staged:
                if os.path.exists(tmp):
                    os.remove(tmp)
        logger.info(f"Generated new key pair in {self.directory}")

    def read_private_pem(self) -> Optional[bytes]:
        try:
            with open(self.private_path, "rb") as file:
                return file.read()
        except FileNotFoundError:
            return None

    def restore_private_pem(self, previous: Optional[bytes]) -> None:
        """Put back the private key that matches the public key on disk."""
        if previous is None:
            os.remove(self.private_path)
        else:
            atomic_write(self.private_path, previous)

    def load_public_key(self) -> rsa.RSAPublicKey:
        with open(self.public_path, "rb") as file:
            return serialization.load_pem_public_key(file.read())

    def load_private_key(self) -> rsa.RSAPrivateKey:
        with open(self.private_path, "rb") as file:
            return serialization.load_pem_private_key(file.read(), password=None)
