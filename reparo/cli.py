import functools
import logging
import os.path
import pathlib
import typing

import attr
import click

from . import __doc__, __version__
from .cipher import AESCipher
from .files import EncryptedFile
from .gpg import GPG
from .keyservices import GPGKeyService, KeyService
from .updater import Updater
from .utils import find_git_directory
from .valuers import EnvValuer, FileValuer, StringValuer, Valuer

log = logging.getLogger(__name__)


@functools.lru_cache()
def rel(path: pathlib.Path) -> str:
    """
    Convert a path to a relative Path.

    Returns a string as these should only be used for presentation.
    """
    return os.path.relpath(path.as_posix(), pathlib.Path.cwd().as_posix())


def enc(file: EncryptedFile) -> str:
    """Style a path to an encrypted file."""
    return click.style(rel(file.path), fg='green')


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


@attr.s(frozen=True)
class Workbench:
    directory: pathlib.Path = attr.ib()
    key_services: typing.Sequence[KeyService] = attr.ib()
    cipher: AESCipher = attr.ib(factory=AESCipher)

    def file(self, path: pathlib.Path) -> EncryptedFile:
        return EncryptedFile(path=path, name=rel(path))


recipients_option = click.option(
    '-r', '--recipient', 'recipients',
    metavar='FINGERPRINT',
    envvar='REPARO_RECIPIENTS',
    multiple=True,
    required=True,
    type=click.STRING,
    help="PGP fingerprint to encrypt the data key for.")


@click.group(help=__doc__)
@click.option(
    '-p', '--path',
    type=PathType(
        file_okay=False,
        dir_okay=True,
        exists=True),
    default=find_git_directory,
    envvar='REPARO_PATH',
    required=True,
    help="Defaults to the current git repository.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.option(
    '-v', '--verbose', 'gpg_verbose',
    default=False,
    is_flag=True,
    help="Pass --verbose to gpg.")
@click.option(
    '--gnupghome',
    type=PathType(file_okay=False, dir_okay=True),
    envvar='GNUPGHOME',
    default=None,
    help="GPG home directory used to decrypt data keys.")
@click.pass_context
def main(
        ctx,
        debug: bool,
        path: pathlib.Path,
        gpg_verbose: bool,
        gnupghome: typing.Optional[pathlib.Path]):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    gpg = GPG(verbose=gpg_verbose, home=gnupghome)
    ctx.obj = Workbench(directory=path, key_services=[GPGKeyService(gpg)])


@main.command()
def version():
    """Show the application version."""
    click.echo(f"reparo {__version__}")


def select_valuer(
        value: typing.Optional[str],
        value_from_env: typing.Optional[str],
        value_from_file: typing.Optional[str]) -> Valuer:
    given = [v for v in (value, value_from_env, value_from_file) if v is not None]
    if len(given) != 1:
        raise click.UsageError(
            "Exactly one of --value, --value-from-env or --value-from-file is required")

    if value is not None:
        return StringValuer(value)
    if value_from_env is not None:
        return EnvValuer(value_from_env)
    return FileValuer(value_from_file)


@main.command()
@click.option(
    '-f', '--file', 'file_path',
    metavar='GLOB',
    required=True,
    help="Glob pattern selecting files, relative to the repository.")
@click.option(
    '-k', '--key',
    metavar='KEY',
    required=True,
    help="Dotted path of the key to set, e.g. 'image.tag'.")
@click.option('--value', metavar='VALUE', help="The new value.")
@click.option('--value-from-env', metavar='NAME', help="Read the new value from $NAME.")
@click.option(
    '--value-from-file', metavar='PATH',
    help="Read the new value from a file in the repository.")
@click.pass_obj
def update(
        wb: Workbench,
        file_path: str,
        key: str,
        value: typing.Optional[str],
        value_from_env: typing.Optional[str],
        value_from_file: typing.Optional[str]):
    """
    Set a key in every encrypted file matching a glob pattern.

    Files are only rewritten when the value changed. When they are, the
    commit title and body describing the change are printed.
    """
    updater = Updater.from_params(
        {'file': file_path, 'key': key},
        select_valuer(value, value_from_env, value_from_file),
        cipher=wb.cipher,
        key_services=wb.key_services)

    if not updater.update(wb.directory):
        click.echo(f"No changes made by {updater}")
        return

    title, body = updater.message()
    click.echo(title)
    click.echo()
    click.echo(body)


@main.command()
@click.argument(
    'files',
    type=PathType(exists=True, dir_okay=False),
    required=True,
    nargs=-1)
@click.pass_obj
def cat(wb: Workbench, files: typing.Sequence[pathlib.Path]):
    """Print the decrypted contents of encrypted files."""
    for path in files:
        click.echo(wb.file(path).contents(wb.cipher, wb.key_services), nl=False)


@main.command()
@recipients_option
@click.argument('path', type=PathType(dir_okay=False), required=True)
@click.argument('plaintext', type=PathType(exists=True, dir_okay=False), required=True)
@click.pass_obj
def create(
        wb: Workbench,
        path: pathlib.Path,
        plaintext: pathlib.Path,
        recipients: typing.Iterable[str]):
    """
    Create a new encrypted file from a plaintext file.

    The format is chosen from the extension of PATH: '.yaml' and '.yml'
    files are YAML, '.json' files are JSON and anything else is stored as
    binary data. The $REPARO_RECIPIENTS environment variable should be a
    whitespace separated list of fingerprints.
    """
    if path.exists():
        raise click.ClickException(f"{rel(path)} already exists")

    file = wb.file(path)
    file.create(plaintext.read_bytes(), wb.cipher, wb.key_services[0], recipients)
    click.echo(f"Encrypted {enc(file)} from the plaintext in {rel(plaintext)}")
