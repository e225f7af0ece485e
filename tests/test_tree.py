import pytest

from reparo.tree import Key, TreeBranch, TreeItem, convert_key_to_path


def test_key_equality_is_structural():
    assert Key('a') == Key('a')
    assert Key(1) == Key(1)
    assert Key('1') != Key(1)
    assert Key('a') != Key('b')


def test_mapping_keys_keep_their_type():
    assert Key.for_mapping('a') == Key('a')
    assert Key.for_mapping(8080) == Key(8080, kind='scalar')
    assert Key.for_mapping(8080) != Key(8080)
    assert Key.for_mapping(8080) != Key('8080')
    assert Key.for_mapping(True) != Key.for_mapping(1)
    assert not Key.for_mapping(None).is_index
    assert len({Key.for_mapping(1), Key(1), Key('1')}) == 3


def test_key_rejects_other_types():
    with pytest.raises(TypeError):
        Key(True)
    with pytest.raises(TypeError):
        Key(1.5)
    with pytest.raises(TypeError):
        Key('a', kind='index')
    with pytest.raises(TypeError):
        Key.for_mapping([1, 2])


def test_from_mapping_keeps_non_string_keys():
    branch = TreeBranch.from_mapping({8080: 'web', None: 'x', 'name': 'app'})
    assert branch.keys() == [Key(8080, kind='scalar'), Key(None, kind='scalar'), Key('name')]
    assert branch.set([Key('name')], 'app2').to_python() == {8080: 'web', None: 'x', 'name': 'app2'}


def test_convert_key_to_path():
    assert convert_key_to_path('a.b.c') == [Key('a'), Key('b'), Key('c')]
    assert convert_key_to_path('a') == [Key('a')]


def test_set_overwrites_existing_value():
    branch = TreeBranch.from_mapping({'foo': 1, 'bar': 2})
    assert branch.set([Key('foo')], 3).to_python() == {'foo': 3, 'bar': 2}


def test_set_appends_missing_root_key():
    branch = TreeBranch.from_mapping({'foo': 1, 'bar': 2})
    updated = branch.set(convert_key_to_path('baz.qux'), 5)
    assert updated.keys() == [Key('foo'), Key('bar'), Key('baz')]
    assert updated.to_python() == {'foo': 1, 'bar': 2, 'baz': {'qux': 5}}


def test_set_inserts_into_nested_branch():
    branch = TreeBranch.from_mapping({'image': {'repository': 'app', 'tag': '1.0'}})
    updated = branch.set(convert_key_to_path('image.tag'), '2.0')
    assert updated.to_python() == {'image': {'repository': 'app', 'tag': '2.0'}}


def test_set_replaces_scalar_ancestor():
    branch = TreeBranch.from_mapping({'image': 'app:1.0'})
    updated = branch.set(convert_key_to_path('image.tag'), '2.0')
    assert updated.to_python() == {'image': {'tag': '2.0'}}


def test_set_does_not_modify_the_branch():
    branch = TreeBranch.from_mapping({'a': {'b': 1}})
    branch.set(convert_key_to_path('a.b'), 2)
    branch.set(convert_key_to_path('c'), 3)
    assert branch.to_python() == {'a': {'b': 1}}


def test_set_on_empty_branch():
    assert TreeBranch().set([Key('a')], 'x') == TreeBranch([TreeItem(Key('a'), 'x')])


def test_set_list_index():
    branch = TreeBranch.from_mapping({'hosts': ['a', 'b']})
    assert branch.set([Key('hosts'), Key(1)], 'c').to_python() == {'hosts': ['a', 'c']}
    assert branch.set([Key('hosts'), Key(2)], 'c').to_python() == {'hosts': ['a', 'b', 'c']}


def test_set_keeps_duplicate_keys():
    branch = TreeBranch([TreeItem(Key('a'), 1), TreeItem(Key('a'), 2)])
    assert branch.set([Key('a')], 3) == TreeBranch([TreeItem(Key('a'), 3), TreeItem(Key('a'), 2)])


def test_set_empty_path():
    with pytest.raises(ValueError):
        TreeBranch().set([], 'x')
