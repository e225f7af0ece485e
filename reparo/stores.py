"""
Stores convert between file contents and trees.

Each store reads and writes two representations: the plaintext document, and
the encrypted document that carries the 'sops' metadata section.
"""

import datetime
import io
import json
import logging
import pathlib
import typing

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError
from ruamel.yaml.representer import RoundTripRepresenter
from ruamel.yaml.scalarstring import LiteralScalarString

from .metadata import METADATA_KEY, Metadata
from .tree import Key, Tree, TreeBranch, TreeItem
from .utils import SerializationError

log = logging.getLogger(__name__)

Branches = typing.List[TreeBranch]


class Store:
    def load_plain_file(self, data: bytes) -> Branches:
        return self.load_documents(data)

    def emit_plain_file(self, branches: Branches) -> bytes:
        return self.emit_documents(branches)

    def load_documents(self, data: bytes) -> Branches:
        raise NotImplementedError

    def emit_documents(self, branches: Branches) -> bytes:
        raise NotImplementedError

    def load_encrypted_file(self, data: bytes) -> Tree:
        metadata: typing.Optional[Metadata] = None
        branches: Branches = []
        for document in self.load_documents(data):
            branch = TreeBranch()
            for item in document:
                if item.key == Key(METADATA_KEY):
                    if metadata is None:
                        metadata = _metadata(item.value)
                else:
                    branch.append(item)
            branches.append(branch)

        if metadata is None:
            raise SerializationError("File is not encrypted: it has no 'sops' metadata")
        return Tree(branches=branches, metadata=metadata)

    def emit_encrypted_file(self, tree: Tree) -> bytes:
        metadata = TreeItem(Key(METADATA_KEY), TreeBranch.from_mapping(tree.metadata.to_mapping()))
        return self.emit_documents([TreeBranch([*branch, metadata]) for branch in tree.branches])


def _metadata(value) -> Metadata:
    if not isinstance(value, TreeBranch):
        raise SerializationError("The 'sops' metadata section is not a mapping")
    return Metadata.from_mapping(value.to_python())


class _Representer(RoundTripRepresenter):
    """Writes null as 'null' everywhere, so a null mapping key survives a rewrite."""

    def represent_none(self, data):
        return self.represent_scalar('tag:yaml.org,2002:null', 'null')


_Representer.add_representer(type(None), _Representer.represent_none)


class YAMLStore(Store):
    """
    One branch per YAML document.

    Duplicate mapping keys are rejected when loading, as a YAML mapping can't
    hold them.
    """

    @staticmethod
    def yaml() -> YAML:
        yaml = YAML()
        yaml.Representer = _Representer
        yaml.width = 4096
        return yaml

    def load_documents(self, data: bytes) -> Branches:
        try:
            documents = list(self.yaml().load_all(data.decode('utf-8')))
        except (YAMLError, UnicodeDecodeError) as error:
            raise SerializationError(f"Error unmarshalling input YAML: {error}") from error

        branches: Branches = []
        for document in documents:
            if document is None:
                branches.append(TreeBranch())
            elif isinstance(document, typing.Mapping):
                branches.append(_from_yaml(document))
            else:
                raise SerializationError("YAML documents must be mappings")
        return branches

    def emit_documents(self, branches: Branches) -> bytes:
        stream = io.StringIO()
        try:
            self.yaml().dump_all([_to_yaml(branch) for branch in branches], stream)
        except YAMLError as error:
            raise SerializationError(f"Error marshaling to YAML: {error}") from error
        return stream.getvalue().encode('utf-8')


def _from_yaml(value):
    if isinstance(value, typing.Mapping):
        return TreeBranch(
            TreeItem(Key.for_mapping(_scalar(k)), _from_yaml(v)) for k, v in value.items())
    if isinstance(value, list):
        return [_from_yaml(v) for v in value]
    return _scalar(value)


def _scalar(value):
    """Strip ruamel's round-trip wrappers from a scalar."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, datetime.datetime):
        return datetime.datetime(
            value.year, value.month, value.day, value.hour, value.minute,
            value.second, value.microsecond, value.tzinfo)
    if isinstance(value, datetime.date):
        return datetime.date(value.year, value.month, value.day)
    return str(value)


def _to_yaml(value):
    if isinstance(value, TreeBranch):
        return CommentedMap((item.key.value, _to_yaml(item.value)) for item in value)
    if isinstance(value, list):
        return CommentedSeq(_to_yaml(v) for v in value)
    if isinstance(value, str) and '\n' in value:
        return LiteralScalarString(value)
    return value


class JSONStore(Store):
    """A single branch holding the top-level JSON object."""

    def load_documents(self, data: bytes) -> Branches:
        try:
            document = json.loads(data, object_pairs_hook=_pairs_to_branch)
        except (ValueError, UnicodeDecodeError) as error:
            raise SerializationError(f"Error unmarshalling input JSON: {error}") from error

        if not isinstance(document, TreeBranch):
            raise SerializationError("JSON documents must be objects")
        return [document]

    def emit_documents(self, branches: Branches) -> bytes:
        if len(branches) != 1:
            raise SerializationError(f"JSON files hold a single document, not {len(branches)}")
        try:
            text = _to_json(branches[0])
        except (TypeError, ValueError) as error:
            raise SerializationError(f"Error marshaling to JSON: {error}") from error
        return f"{text}\n".encode('utf-8')


def _pairs_to_branch(pairs) -> TreeBranch:
    return TreeBranch(TreeItem(Key(key), value) for key, value in pairs)


def _to_json(value, level: int = 0) -> str:
    """
    Format a value like json.dumps(value, indent=4) does.

    Objects are written from the item list, so duplicate keys and their order
    are kept.
    """
    indent = ' ' * 4 * (level + 1)
    if isinstance(value, TreeBranch):
        if not value:
            return '{}'
        items = [f"{indent}{_dumps(str(item.key))}: {_to_json(item.value, level + 1)}"
                 for item in value]
        return '{\n' + ',\n'.join(items) + '\n' + indent[:-4] + '}'
    if isinstance(value, list):
        if not value:
            return '[]'
        items = [f"{indent}{_to_json(v, level + 1)}" for v in value]
        return '[\n' + ',\n'.join(items) + '\n' + indent[:-4] + ']'
    return _dumps(value)


def _dumps(value) -> str:
    return json.dumps(value, ensure_ascii=False)


class BinaryStore(JSONStore):
    """
    Arbitrary files, stored encrypted as a JSON object with a 'data' key.

    The plaintext representation is the raw file contents.
    """

    def load_plain_file(self, data: bytes) -> Branches:
        try:
            text = data.decode('utf-8')
        except UnicodeDecodeError as error:
            raise SerializationError(f"Binary files must be valid UTF-8: {error}") from error
        return [TreeBranch([TreeItem(Key('data'), text)])]

    def emit_plain_file(self, branches: Branches) -> bytes:
        for branch in branches:
            value = branch.get(Key('data'))
            if value is not None:
                return value if isinstance(value, bytes) else str(value).encode('utf-8')
        raise SerializationError("No binary data found in tree")


STORES: typing.Dict[str, typing.Type[Store]] = {
    'yaml': YAMLStore,
    'json': JSONStore,
    'binary': BinaryStore,
}


def format_for_path(path: pathlib.Path) -> str:
    suffix = path.suffix.lower()
    if suffix in ('.yaml', '.yml'):
        return 'yaml'
    if suffix == '.json':
        return 'json'
    return 'binary'


def store_for_format(format: str) -> Store:
    log.debug(f"Using the {format} store")
    return STORES[format]()
