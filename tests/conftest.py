import base64
import pathlib
import typing

import attr
import click.testing
import pytest
from ruamel.yaml import YAML

import reparo.cli
from reparo.cipher import AESCipher
from reparo.files import EncryptedFile
from reparo.keyservices import KeyService
from reparo.metadata import MasterKey
from reparo.utils import KeyServiceError

FINGERPRINT = 'FBC7B9E2A4F9289AC0C1D4843D16CEE4A27381B4'
OTHER_FINGERPRINT = '1E5F3D2C8B7A69504132F1E0D9C8B7A695041321'


@attr.s(frozen=True)
class FakeKeyService(KeyService):
    """Wraps data keys with base64, and only unwraps them for known fingerprints."""

    key_type = 'pgp'

    fingerprints: typing.FrozenSet[str] = attr.ib(
        default=frozenset({FINGERPRINT}), converter=frozenset)

    def decrypt(self, master_key: MasterKey) -> bytes:
        if master_key.identifier not in self.fingerprints:
            raise KeyServiceError(f"No secret key for {master_key.identifier}")
        return base64.b64decode(master_key.encrypted_key)

    def encrypt(self, recipient: str, data_key: bytes) -> MasterKey:
        return MasterKey(
            type=self.key_type,
            identifier=recipient,
            encrypted_key=base64.b64encode(data_key).decode('ascii'),
            created_at='2026-10-18T12:00:00Z')


def load_yaml(text: typing.Union[str, bytes]) -> typing.List[typing.Any]:
    return list(YAML(typ='safe').load_all(text))


@pytest.fixture()
def key_services() -> typing.List[KeyService]:
    return [FakeKeyService()]


@pytest.fixture()
def repo(tmp_path) -> pathlib.Path:
    return tmp_path


@pytest.fixture()
def encrypt(repo):
    def encrypt_func(
            name: str,
            plaintext: str,
            mode: int = 0o644,
            recipient: str = FINGERPRINT) -> pathlib.Path:
        path = repo / name
        path.parent.mkdir(parents=True, exist_ok=True)
        EncryptedFile(path=path, name=name).create(
            plaintext.encode('utf-8'), AESCipher(), FakeKeyService(), [recipient], mode=mode)
        return path

    return encrypt_func


@pytest.fixture()
def decrypt(key_services):
    def decrypt_func(path: pathlib.Path) -> str:
        file = EncryptedFile(path=path, name=path.name)
        return file.contents(AESCipher(), key_services).decode('utf-8')

    return decrypt_func


@pytest.fixture()
def invoke(repo, monkeypatch):
    monkeypatch.setattr(reparo.cli, 'GPGKeyService', lambda gpg: FakeKeyService())

    def invoke_func(arguments: typing.Sequence[str]):
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        result = runner.invoke(reparo.cli.main, ['-p', repo.as_posix(), *arguments])
        if result.exit_code != 0:
            message = f"Command reparo {' '.join(arguments)} failed: {result.output}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func
