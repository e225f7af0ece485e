"""
Key services unwrap the data key of a document for one of its master keys,
and wrap a new data key for a recipient.
"""

import logging
import subprocess
import typing

import attr

from .gpg import GPG
from .metadata import MasterKey, timestamp
from .utils import KeyServiceError

log = logging.getLogger(__name__)


class KeyService:
    key_type: str = ''

    def handles(self, master_key: MasterKey) -> bool:
        return master_key.type == self.key_type

    def decrypt(self, master_key: MasterKey) -> bytes:
        raise NotImplementedError

    def encrypt(self, recipient: str, data_key: bytes) -> MasterKey:
        raise NotImplementedError


@attr.s(frozen=True)
class GPGKeyService(KeyService):
    """Wraps data keys for PGP fingerprints using the local gpg keyring."""

    key_type = 'pgp'

    gpg: GPG = attr.ib(factory=GPG)

    def decrypt(self, master_key: MasterKey) -> bytes:
        log.debug(f"Decrypting the data key for {master_key}")
        try:
            return self.gpg.decrypt(master_key.encrypted_key.encode('utf-8'))
        except (OSError, subprocess.CalledProcessError) as error:
            raise KeyServiceError(
                f"gpg could not decrypt the data key for {master_key.identifier}") from error

    def encrypt(self, recipient: str, data_key: bytes) -> MasterKey:
        log.debug(f"Encrypting the data key for pgp:{recipient}")
        try:
            armoured = self.gpg.encrypt(data_key, recipients=[recipient])
        except (OSError, subprocess.CalledProcessError) as error:
            raise KeyServiceError(
                f"gpg could not encrypt the data key for {recipient}") from error
        return MasterKey(
            type=self.key_type,
            identifier=recipient,
            encrypted_key=armoured.decode('utf-8'),
            created_at=timestamp())


def get_data_key(
        master_keys: typing.Iterable[MasterKey],
        key_services: typing.Sequence[KeyService]) -> bytes:
    """Return the data key from the first master key a key service can unwrap."""
    failures: typing.List[str] = []
    for master_key in master_keys:
        for service in key_services:
            if not service.handles(master_key):
                continue
            try:
                return service.decrypt(master_key)
            except KeyServiceError as error:
                log.debug(f"Key service failed for {master_key}: {error.message}")
                failures.append(f"{master_key}: {error.message}")

    if not failures:
        raise KeyServiceError("No key service can decrypt any of the master keys")
    raise KeyServiceError(f"Failed to get the data key: {'; '.join(failures)}")
