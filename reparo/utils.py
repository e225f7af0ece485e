import os.path
import pathlib
import typing

import click
import git


def find_git_directory() -> typing.Optional[pathlib.Path]:
    try:
        repo = git.Repo(search_parent_directories=True)
    except git.exc.InvalidGitRepositoryError:
        return None
    return pathlib.Path(repo.working_dir)


def relative_to(path: pathlib.Path, directory: pathlib.Path) -> str:
    """
    Convert a path to a string relative to a directory.

    Falls back to the path itself when it can't be made relative. Only used
    for presentation.
    """
    try:
        return os.path.relpath(path.as_posix(), directory.as_posix())
    except ValueError:
        return path.as_posix()


class ReparoException(click.ClickException):
    pass


class ConfigurationError(ReparoException):
    pass


class ValueSourceError(ReparoException):
    pass


class PatternError(ReparoException):
    pass


class FileError(ReparoException):
    pass


class SerializationError(ReparoException):
    pass


class CryptoError(ReparoException):
    pass


class KeyServiceError(CryptoError):
    pass
