"""
The 'sops' section of an encrypted document.

It records how the data key was wrapped for each recipient, the encrypted MAC
of the plaintext values and the options used when the file was encrypted.
Entries reparo doesn't model are kept as-is, in their original order.
"""

import datetime
import typing

import attr

from .utils import SerializationError

METADATA_KEY = 'sops'
FORMAT_VERSION = '3.7.3'
DEFAULT_UNENCRYPTED_SUFFIX = '_unencrypted'

# Master key types and the field holding their identifier.
KEY_TYPES = {
    'age': 'recipient',
    'pgp': 'fp',
}


def timestamp(moment: typing.Optional[datetime.datetime] = None) -> str:
    moment = moment or datetime.datetime.now(datetime.timezone.utc)
    return moment.astimezone(datetime.timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def _text(value) -> str:
    if isinstance(value, datetime.datetime):
        return timestamp(value)
    return '' if value is None else str(value)


@attr.s(frozen=True, kw_only=True)
class MasterKey:
    type: str = attr.ib()
    identifier: str = attr.ib()
    encrypted_key: str = attr.ib()
    created_at: str = attr.ib(default='')

    def __str__(self):
        return f"{self.type}:{self.identifier}"

    @classmethod
    def from_mapping(cls, key_type: str, mapping: typing.Mapping) -> 'MasterKey':
        field = KEY_TYPES[key_type]
        if field not in mapping or 'enc' not in mapping:
            raise SerializationError(f"Invalid {key_type} key in metadata")
        return cls(
            type=key_type,
            identifier=_text(mapping[field]),
            encrypted_key=_text(mapping['enc']),
            created_at=_text(mapping.get('created_at')))

    def to_mapping(self) -> dict:
        mapping = {KEY_TYPES[self.type]: self.identifier}
        if self.created_at:
            mapping['created_at'] = self.created_at
        mapping['enc'] = self.encrypted_key
        return mapping


KeyGroup = typing.List[MasterKey]


def _key_group(mapping: typing.Mapping) -> KeyGroup:
    return [
        MasterKey.from_mapping(key_type, entry)
        for key_type in KEY_TYPES
        for entry in (mapping.get(key_type) or ())]


@attr.s(kw_only=True)
class Metadata:
    last_modified: str = attr.ib(factory=timestamp)
    mac: str = attr.ib(default='')
    version: str = attr.ib(default=FORMAT_VERSION)
    unencrypted_suffix: str = attr.ib(default=DEFAULT_UNENCRYPTED_SUFFIX)
    key_groups: typing.List[KeyGroup] = attr.ib(factory=list)
    extra: typing.Dict[str, typing.Any] = attr.ib(factory=dict)
    order: typing.List[str] = attr.ib(factory=list)

    @property
    def master_keys(self) -> typing.Iterator[MasterKey]:
        for group in self.key_groups:
            yield from group

    @classmethod
    def from_mapping(cls, mapping: typing.Mapping) -> 'Metadata':
        if 'lastmodified' not in mapping:
            raise SerializationError("Metadata has no lastmodified timestamp")

        if 'key_groups' in mapping:
            key_groups = [_key_group(group) for group in mapping['key_groups'] or ()]
            known = {'key_groups'}
        else:
            key_groups = [_key_group(mapping)]
            known = set(KEY_TYPES)

        known |= {'lastmodified', 'mac', 'version', 'unencrypted_suffix'}
        return cls(
            last_modified=_text(mapping['lastmodified']),
            mac=_text(mapping.get('mac')),
            version=_text(mapping.get('version')),
            unencrypted_suffix=_text(mapping.get('unencrypted_suffix', DEFAULT_UNENCRYPTED_SUFFIX)),
            key_groups=key_groups,
            extra={k: v for k, v in mapping.items() if k not in known},
            order=list(mapping))

    def to_mapping(self) -> dict:
        mapping: typing.Dict[str, typing.Any] = {}

        if len(self.key_groups) == 1 and 'key_groups' not in self.order:
            for key_type in KEY_TYPES:
                keys = [k.to_mapping() for k in self.key_groups[0] if k.type == key_type]
                if keys or key_type in self.order:
                    mapping[key_type] = keys
        else:
            mapping['key_groups'] = [
                {key_type: [k.to_mapping() for k in group if k.type == key_type]
                 for key_type in KEY_TYPES if any(k.type == key_type for k in group)}
                for group in self.key_groups]

        mapping.update(self.extra)
        mapping['lastmodified'] = self.last_modified
        mapping['mac'] = self.mac
        if self.unencrypted_suffix and ('unencrypted_suffix' in self.order or not self.order):
            mapping['unencrypted_suffix'] = self.unencrypted_suffix
        if self.version or 'version' in self.order:
            mapping['version'] = self.version

        position = {key: index for index, key in enumerate(self.order)}
        return dict(sorted(mapping.items(), key=lambda kv: position.get(kv[0], len(position))))
