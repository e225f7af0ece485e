"""
Value sources for updates.

A valuer is asked for the new value once per update, before any file is read.
"""

import logging
import os
import pathlib

import attr

from .utils import ValueSourceError

log = logging.getLogger(__name__)


class Valuer:
    def value(self, repo_path: pathlib.Path) -> str:
        raise NotImplementedError


@attr.s(frozen=True)
class StringValuer(Valuer):
    text: str = attr.ib()

    def value(self, repo_path: pathlib.Path) -> str:
        return self.text


@attr.s(frozen=True)
class EnvValuer(Valuer):
    """Read the value from an environment variable, which must be set."""

    name: str = attr.ib()

    def value(self, repo_path: pathlib.Path) -> str:
        if self.name not in os.environ:
            raise ValueSourceError(f"Environment variable {self.name} is not set")
        log.debug(f"Using the value of ${self.name}")
        return os.environ[self.name]


@attr.s(frozen=True)
class FileValuer(Valuer):
    """Read the value from a file in the repository, without its trailing newline."""

    path: str = attr.ib()

    def value(self, repo_path: pathlib.Path) -> str:
        path = pathlib.Path(repo_path) / self.path
        log.debug(f"Reading the value from {path}")
        try:
            return path.read_text().rstrip('\n')
        except OSError as error:
            raise ValueSourceError(f"Failed to read {self.path}: {error}") from error
