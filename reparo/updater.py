"""
Update a single key in every encrypted file matching a glob pattern.

Files are decrypted, updated in every branch, and only re-encrypted (with
their original data key) and written back when the plaintext changed.
"""

import logging
import pathlib
import typing

import attr

from .cipher import AESCipher
from .files import EncryptedFile
from .gpg import GPG
from .keyservices import GPGKeyService, KeyService
from .tree import Key, Path, TreeBranch, convert_key_to_path
from .utils import ConfigurationError, PatternError, SerializationError, ValueSourceError, relative_to
from .valuers import Valuer

log = logging.getLogger(__name__)

Setter = typing.Callable[[TreeBranch, Path, typing.Any], TreeBranch]


def check_pattern(pattern: str) -> None:
    """
    Raise PatternError for patterns pathlib would silently mismatch.

    Patterns use pathlib's glob syntax: '**' matches any number of
    directories and a backslash is an ordinary character, not an escape.
    Absolute patterns and unclosed or empty character classes are rejected.
    """
    if pathlib.PurePath(pattern).is_absolute():
        raise PatternError(f"Syntax error in pattern {pattern}: patterns must be relative")

    index = 0
    while index < len(pattern):
        if pattern[index] == '[':
            start = index + 1
            if pattern[start:start + 1] in ('^', '!'):
                start += 1
            end = pattern.find(']', start)
            if end == -1:
                raise PatternError(f"Syntax error in pattern {pattern}: unclosed '['")
            if end == start:
                raise PatternError(f"Syntax error in pattern {pattern}: empty character class")
            index = end
        index += 1


def select_files(repo_path: pathlib.Path, pattern: str) -> typing.List[pathlib.Path]:
    """Return the sorted absolute paths of the files matching pattern in repo_path."""
    check_pattern(pattern)
    try:
        matches = {p for p in repo_path.absolute().glob(pattern) if p.is_file()}
    except (ValueError, NotImplementedError) as error:
        raise PatternError(f"Failed to expand glob pattern {pattern}: {error}") from error
    log.info(f"Pattern {pattern} matched {len(matches)} file(s) in {repo_path}")
    return sorted(matches)


def has_been_erased(previous: TreeBranch, updated: TreeBranch) -> bool:
    """Detect a set that replaced the whole branch with only the new path."""
    if len(updated) != 1:
        # an erased branch only holds the new path
        return False

    if len(previous) != 1:
        return True

    # same single key: a one-item branch whose value was updated
    return previous[0].key != updated[0].key


def set_in_branch(
        branch: TreeBranch,
        path: Path,
        value,
        setter: Setter = TreeBranch.set) -> TreeBranch:
    """
    Set value at path in branch, recovering from a setter that erased the branch.

    A destructive setter replaces the branch when the path's root key is
    missing. Setting the root key alone first keeps the existing items, and
    the full path can then be set inside it.
    """
    updated = setter(branch, path, value)
    if has_been_erased(branch, updated):
        log.debug(f"Setting {path[0]} erased the branch, re-applying it as a sibling")
        updated = setter(branch, [path[0]], value)
        updated = setter(updated, path, value)
    return updated


def default_key_services() -> typing.List[KeyService]:
    return [GPGKeyService(GPG())]


@attr.s(frozen=True, kw_only=True)
class Updater:
    file_path: str = attr.ib()
    key: str = attr.ib()
    valuer: Valuer = attr.ib()

    cipher: AESCipher = attr.ib(factory=AESCipher)
    key_services: typing.Sequence[KeyService] = attr.ib(factory=default_key_services)
    setter: Setter = attr.ib(default=TreeBranch.set)

    @classmethod
    def from_params(
            cls,
            params: typing.Mapping[str, str],
            valuer: Valuer,
            **kwargs) -> 'Updater':
        file_path = params.get('file')
        if not file_path:
            raise ConfigurationError("missing file parameter")

        key = params.get('key')
        if not key:
            raise ConfigurationError("missing key parameter")

        return cls(file_path=file_path, key=key, valuer=valuer, **kwargs)

    def __str__(self):
        return f"Sops[key={self.key},file={self.file_path}]"

    def message(self) -> typing.Tuple[str, str]:
        """The title and body to use in commits and pull requests."""
        title = f"Update {self.file_path} {self.key}"
        body = f"Updating encrypted file `{self.file_path}` key `{self.key}`"
        return title, body

    @property
    def path(self) -> typing.List[Key]:
        return convert_key_to_path(self.key)

    def update(self, repo_path: pathlib.Path) -> bool:
        """Update the matching files in repo_path, returning True if any were rewritten."""
        repo_path = pathlib.Path(repo_path)
        try:
            value = self.valuer.value(repo_path)
        except ValueSourceError as error:
            raise ValueSourceError(f"Failed to get value: {error.message}") from error

        updated = False
        for path in select_files(repo_path, self.file_path):
            file = EncryptedFile(path=path, name=relative_to(path, repo_path))
            if self.update_file(file, value):
                updated = True

        log.info(f"{self} {'updated' if updated else 'did not change'} files in {repo_path}")
        return updated

    def update_file(self, file: EncryptedFile, value) -> bool:
        mode = file.mode()
        store = file.store
        tree, data_key = file.load(store, self.cipher, self.key_services)

        try:
            original = store.emit_plain_file(tree.branches)
        except SerializationError as error:
            raise SerializationError(
                f"Failed to emit original tree for {file}: {error.message}") from error

        path = self.path
        tree.branches = [set_in_branch(branch, path, value, self.setter) for branch in tree.branches]

        try:
            updated = store.emit_plain_file(tree.branches)
        except SerializationError as error:
            raise SerializationError(
                f"Failed to emit updated tree for {file}: {error.message}") from error

        if updated == original:
            log.debug(f"{file} already has the value for {self.key}")
            return False

        file.save(store, tree, data_key, self.cipher, mode)
        log.info(f"Updated {self.key} in {file}")
        return True
