import logging
import os
import pathlib
import subprocess
import typing

import attr

log = logging.getLogger(__name__)


@attr.s(frozen=True)
class GPG:
    verbose: bool = attr.ib(default=False)
    home: typing.Optional[pathlib.Path] = attr.ib(default=None)

    def command(
            self,
            arguments: typing.Sequence[str],
            armour: bool) -> typing.Tuple[str, ...]:
        command: typing.Tuple[str, ...] = ('gpg', '--yes', '--batch')
        if armour:
            command = (*command, '--armour')
        if self.verbose:
            command = (*command, '--verbose')
        return (*command, *arguments)

    def run(self,
            arguments: typing.Sequence[str],
            armour: bool,
            stdin: bytes) -> subprocess.CompletedProcess:
        env = {**os.environ, 'GNUPGHOME': self.home.as_posix()} if self.home else None
        try:
            return subprocess.run(
                self.command(arguments, armour),
                input=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                check=True)
        except subprocess.CalledProcessError as error:
            for line in error.stderr.decode('utf-8', errors='replace').splitlines():
                log.error(line)
            raise

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt an (armoured or binary) message read from stdin."""
        log.debug("Decrypting a message with gpg")
        return self.run(['--decrypt'], armour=False, stdin=ciphertext).stdout

    def encrypt(
            self,
            plaintext: bytes,
            recipients: typing.Iterable[str],
            armour: bool = True) -> bytes:
        log.debug("Encrypting a message with gpg")
        args: typing.List[str] = []
        for recipient in recipients:
            args += ['--recipient', recipient]
        args += ['--encrypt']
        return self.run(args, armour=armour, stdin=plaintext).stdout
