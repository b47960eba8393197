import pytest

from kadnode.keys import KEY_BYTES, DhtKey, NodeInfo

HELLO_SHA256 = "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def _key_with(index, byte):
    raw = bytearray(32)
    raw[index] = byte
    return DhtKey(bytes(raw))


def test_distance_identical_nodes():
    assert DhtKey(bytes(32)).distance(DhtKey(bytes(32))) == bytes(32)


def test_distance_different_msb():
    assert _key_with(0, 0b10000000).distance(DhtKey(bytes(32))) == _key_with(0, 0b10000000).raw


def test_distance_different_lsb():
    assert _key_with(31, 1).distance(DhtKey(bytes(32))) == _key_with(31, 1).raw


def test_distance_middle_bytes():
    assert _key_with(15, 0b00010000).distance(DhtKey(bytes(32))) == _key_with(15, 0b00010000).raw


def test_distance_random_ids():
    assert DhtKey.random().distance(DhtKey.random()) != bytes(32)
    assert len(DhtKey.random().distance(DhtKey.random())) == 32


def test_distance_is_symmetric():
    a, b = DhtKey.random(), DhtKey.random()
    assert a.distance(b) == b.distance(a)


def test_random_keys_differ():
    keys = [DhtKey.random() for _ in range(8)]
    assert len(set(keys)) == 8
    assert [len(k.raw) for k in keys] == [KEY_BYTES] * 8


def test_from_str_deterministic():
    assert DhtKey.from_str("test") == DhtKey.from_str("test")
    assert DhtKey.from_str("test") != DhtKey.from_str("different")


def test_from_str_is_sha256():
    assert DhtKey.from_str("hello").raw.hex() == HELLO_SHA256


def test_from_str_distance():
    id1 = DhtKey.from_str("test1")
    assert id1.distance(DhtKey.from_str("test2")) != bytes(32)
    assert id1.distance(DhtKey.from_str("test1")) == bytes(32)


def test_str_shows_first_eight_bytes():
    assert str(DhtKey.from_str("hello")) == HELLO_SHA256[:16]


def test_wrong_length_rejected():
    with pytest.raises(ValueError):
        DhtKey(b"short")


def test_keys_are_hashable():
    assert {DhtKey.from_str("a"): 1}[DhtKey.from_str("a")] == 1


def test_key_json_round_trip():
    key = DhtKey.random()
    data = key.to_json()
    assert len(data) == KEY_BYTES
    assert DhtKey.from_json(data) == key


@pytest.mark.parametrize("bad", [[1, 2, 3], "abc", [256] * 32, [-1] * 32, None])
def test_key_from_json_rejects_malformed(bad):
    with pytest.raises(ValueError):
        DhtKey.from_json(bad)


def test_node_info_json():
    info = NodeInfo(DhtKey.from_str("hello"), ("127.0.0.1", 4000))
    data = info.to_json()
    assert data["addr"] == "127.0.0.1:4000"
    assert bytes(data["id"]).hex() == HELLO_SHA256
    assert NodeInfo.from_json(data) == info


def test_node_info_from_json_rejects_missing_fields():
    with pytest.raises(ValueError):
        NodeInfo.from_json({"id": [0] * 32})


def test_node_info_str():
    info = NodeInfo(DhtKey.from_str("hello"), ("127.0.0.1", 4000))
    assert str(info) == f"Node[{HELLO_SHA256[:16]}@127.0.0.1:4000]"