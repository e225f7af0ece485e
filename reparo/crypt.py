"""
Encryption and decryption of whole trees.

Every scalar is encrypted separately with the document's data key, using the
path of keys leading to it as additional data. The MAC is a SHA-512 digest of
every plaintext value in document order, stored encrypted in the metadata.
"""

import hashlib
import logging
import os
import typing

from .cipher import DATA_KEY_SIZE, AESCipher, is_encrypted, value_bytes
from .keyservices import KeyService, get_data_key
from .metadata import Metadata
from .tree import Key, Tree, TreeBranch, TreeItem
from .utils import CryptoError, KeyServiceError

log = logging.getLogger(__name__)

Visitor = typing.Callable[[typing.Any, typing.Sequence[Key], bool], typing.Any]


def additional_data(path: typing.Sequence[Key]) -> str:
    return ''.join(f"{key}:" for key in path)


def _walk_branch(
        branch: TreeBranch,
        path: typing.List[Key],
        visit: Visitor,
        suffix: str,
        unencrypted: bool = False) -> TreeBranch:
    return TreeBranch(
        TreeItem(item.key, _walk_value(
            item.value, path + [item.key], visit, suffix,
            unencrypted or bool(suffix and str(item.key).endswith(suffix))))
        for item in branch)


def _walk_value(value, path, visit, suffix, unencrypted):
    if isinstance(value, TreeBranch):
        return _walk_branch(value, path, visit, suffix, unencrypted)
    if isinstance(value, list):
        return [_walk_value(v, path, visit, suffix, unencrypted) for v in value]
    if value is None:
        return None
    return visit(value, path, unencrypted)


def walk_tree(tree: Tree, visit: Visitor) -> None:
    """Replace every scalar in the tree with the result of visit."""
    suffix = tree.metadata.unencrypted_suffix
    tree.branches = [_walk_branch(branch, [], visit, suffix) for branch in tree.branches]


def decrypt_tree(
        tree: Tree,
        cipher: AESCipher,
        key_services: typing.Sequence[KeyService]) -> bytes:
    """
    Decrypt a tree in place and return its data key.

    Raises CryptoError when the data key can't be recovered, a value can't be
    decrypted or the MAC doesn't match the decrypted values.
    """
    data_key = get_data_key(tree.metadata.master_keys, key_services)
    if len(data_key) != DATA_KEY_SIZE:
        raise KeyServiceError(f"Data key has an invalid size of {len(data_key)} bytes")

    digest = hashlib.sha512()

    def decrypt_value(value, path, unencrypted):
        if not unencrypted and is_encrypted(value):
            try:
                value = cipher.decrypt(value, data_key, additional_data(path))
            except CryptoError as error:
                raise CryptoError(
                    f"Could not decrypt '{'.'.join(map(str, path))}': {error.message}"
                ) from error
        digest.update(value_bytes(value))
        return value

    walk_tree(tree, decrypt_value)

    if tree.metadata.mac:
        stored = cipher.decrypt(tree.metadata.mac, data_key, tree.metadata.last_modified)
        if stored != digest.hexdigest().upper():
            raise CryptoError("MAC mismatch: the file has been modified without its data key")
    log.debug("Decrypted tree and verified its MAC")
    return data_key


def encrypt_tree(tree: Tree, data_key: bytes, cipher: AESCipher) -> None:
    """Encrypt a tree in place with an existing data key and update its MAC."""
    digest = hashlib.sha512()

    def encrypt_value(value, path, unencrypted):
        digest.update(value_bytes(value))
        if unencrypted:
            return value
        return cipher.encrypt(value, data_key, additional_data(path))

    walk_tree(tree, encrypt_value)
    tree.metadata.mac = cipher.encrypt(
        digest.hexdigest().upper(), data_key, tree.metadata.last_modified)


def create_tree(
        branches: typing.List[TreeBranch],
        cipher: AESCipher,
        key_service: KeyService,
        recipients: typing.Iterable[str]) -> Tree:
    """Encrypt plaintext branches with a new data key wrapped for each recipient."""
    recipients = list(recipients)
    if not recipients:
        raise KeyServiceError("At least one recipient is required")

    data_key = os.urandom(DATA_KEY_SIZE)
    master_keys = [key_service.encrypt(recipient, data_key) for recipient in recipients]
    tree = Tree(branches=branches, metadata=Metadata(key_groups=[master_keys]))
    encrypt_tree(tree, data_key, cipher)
    log.info(f"Encrypted a new tree for {len(master_keys)} recipient(s)")
    return tree
