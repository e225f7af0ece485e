import reparo.api
from conftest import FINGERPRINT, FakeKeyService, load_yaml
from reparo.valuers import StringValuer


def test_create_update_and_read(repo):
    path = repo / 'secrets.yaml'
    reparo.api.create(path, b"image:\n  tag: '1.0'\n", [FINGERPRINT], key_service=FakeKeyService())

    assert reparo.api.update(repo, '*.yaml', 'image.tag', '2.0', key_services=[FakeKeyService()])
    assert not reparo.api.update(
        repo, '*.yaml', 'image.tag', StringValuer('2.0'), key_services=[FakeKeyService()])

    contents = reparo.api.contents(path, key_services=[FakeKeyService()])
    assert load_yaml(contents) == [{'image': {'tag': '2.0'}}]
