import logging
import os
import pathlib
import stat
import typing

import attr

from .cipher import AESCipher
from .crypt import create_tree, decrypt_tree, encrypt_tree
from .keyservices import KeyService
from .stores import Store, format_for_path, store_for_format
from .tree import Tree
from .utils import CryptoError, FileError, SerializationError

log = logging.getLogger(__name__)


@attr.s(frozen=True, kw_only=True)
class EncryptedFile:
    """
    An encrypted document on disk.

    The name is only used in messages, and is usually the path relative to
    the repository the file was found in.
    """

    path: pathlib.Path = attr.ib()
    name: str = attr.ib()

    def __str__(self):
        return self.name

    @property
    def format(self) -> str:
        return format_for_path(self.path)

    @property
    def store(self) -> Store:
        return store_for_format(self.format)

    def mode(self) -> int:
        try:
            return stat.S_IMODE(self.path.stat().st_mode)
        except OSError as error:
            raise FileError(f"Failed to access file {self}: {error}") from error

    def read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as error:
            raise FileError(f"Failed to read file {self}: {error}") from error

    def load(
            self,
            store: Store,
            cipher: AESCipher,
            key_services: typing.Sequence[KeyService]) -> typing.Tuple[Tree, bytes]:
        """Load and decrypt the file, returning the tree and its data key."""
        log.debug(f"Loading encrypted file {self}")
        try:
            tree = store.load_encrypted_file(self.read())
        except SerializationError as error:
            raise SerializationError(
                f"Failed to load encrypted file {self}: {error.message}") from error

        try:
            data_key = decrypt_tree(tree, cipher, key_services)
        except CryptoError as error:
            raise CryptoError(
                f"Failed to decrypt tree for {self}: {error.message}") from error
        return tree, data_key

    def save(
            self,
            store: Store,
            tree: Tree,
            data_key: bytes,
            cipher: AESCipher,
            mode: int) -> None:
        """Encrypt the tree with its original data key and overwrite the file."""
        log.debug(f"Re-encrypting {self}")
        try:
            encrypt_tree(tree, data_key, cipher)
        except CryptoError as error:
            raise CryptoError(
                f"Failed to encrypt tree for {self}: {error.message}") from error

        try:
            data = store.emit_encrypted_file(tree)
        except SerializationError as error:
            raise SerializationError(
                f"Failed to generate re-encrypted file {self}: {error.message}") from error

        self.write(data, mode)

    def write(self, data: bytes, mode: int) -> None:
        try:
            self.path.write_bytes(data)
            os.chmod(self.path, mode)
        except OSError as error:
            raise FileError(
                f"Failed to write encrypted data to file {self}: {error}") from error

    def contents(
            self,
            cipher: AESCipher,
            key_services: typing.Sequence[KeyService]) -> bytes:
        log.debug(f"Reading contents of {self}")
        store = self.store
        tree, _ = self.load(store, cipher, key_services)
        try:
            return store.emit_plain_file(tree.branches)
        except SerializationError as error:
            raise SerializationError(
                f"Failed to emit plaintext for {self}: {error.message}") from error

    def create(
            self,
            plaintext: bytes,
            cipher: AESCipher,
            key_service: KeyService,
            recipients: typing.Iterable[str],
            mode: int = 0o644) -> None:
        """Encrypt a plaintext document into this file with a new data key."""
        log.debug(f"Creating encrypted file {self}")
        store = self.store
        try:
            branches = store.load_plain_file(plaintext)
        except SerializationError as error:
            raise SerializationError(
                f"Failed to load plaintext for {self}: {error.message}") from error

        tree = create_tree(branches, cipher, key_service, recipients)
        self.write(store.emit_encrypted_file(tree), mode)
