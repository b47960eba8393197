import random

from kadnode.keys import KEY_SIZE, K, DhtKey, NodeInfo
from kadnode.routing import Bucket, RoutingTable


def _node(port):
    return NodeInfo(DhtKey.random(), ("127.0.0.1", port))


def _with_first_byte(first):
    raw = bytearray(DhtKey.random().raw)
    raw[0] = first
    return DhtKey(bytes(raw))


def test_bucket_basic():
    bucket = Bucket()
    node = _node(4000)
    assert bucket.update(node) is True
    assert len(bucket.nodes) == 1
    assert bucket.update(node) is True
    assert len(bucket.nodes) == 1
    bucket.remove(node.id)
    assert bucket.nodes == []


def test_bucket_refresh_moves_node_to_end():
    bucket = Bucket()
    first, second = _node(4000), _node(4001)
    bucket.update(first)
    bucket.update(second)
    before = bucket.last_updated
    bucket.update(first)
    assert bucket.nodes == [second, first]
    assert bucket.last_updated >= before


def test_bucket_capacity():
    bucket = Bucket()
    added = [bucket.update(_node(4000 + i)) for i in range(K)]
    assert added == [True] * K
    assert bucket.update(_node(4100)) is False
    assert len(bucket.nodes) == K


def test_routing_table_basic():
    assert len(RoutingTable(DhtKey.random()).buckets) == KEY_SIZE


def test_routing_table_update():
    rt = RoutingTable(DhtKey.random())
    test_node = _node(4000)
    assert rt.update(test_node) is True
    closest = rt.find_closest(test_node.id, 1)
    assert len(closest) == 1
    assert closest[0].id == test_node.id


def test_routing_table_remove():
    rt = RoutingTable(DhtKey.random())
    test_node = _node(4000)
    rt.update(test_node)
    rt.remove(test_node.id)
    assert rt.find_closest(test_node.id, 1) == []


def test_routing_table_find_closest():
    rt = RoutingTable(DhtKey.random())
    nodes = [NodeInfo(_with_first_byte(i), ("127.0.0.1", 4000 + i)) for i in range(5)]
    assert [rt.update(node) for node in nodes] == [True] * 5

    target = DhtKey.random()
    closest = rt.find_closest(target, 3)
    assert len(closest) == 3
    distances = [target.distance(n.id) for n in closest]
    assert distances == sorted(distances)
    ids = {n.id for n in nodes}
    assert {n.id for n in closest} <= ids


def test_find_closest_returns_all_when_count_exceeds():
    rt = RoutingTable(DhtKey.random())
    nodes = [_node(4000 + i) for i in range(4)]
    for node in nodes:
        rt.update(node)
    found = rt.find_closest(DhtKey.random(), 10)
    assert {n.id for n in found} == {n.id for n in nodes}


def test_find_closest_picks_nearest():
    rt = RoutingTable(DhtKey.random())
    nodes = [_node(4000 + i) for i in range(8)]
    for node in nodes:
        rt.update(node)
    target = random.choice(nodes).id
    assert rt.find_closest(target, 1)[0].id == target


def test_bucket_index_calculation():
    rt = RoutingTable(DhtKey.random())
    assert rt.bucket_index(bytes(32)) == 0

    msb = bytearray(32)
    msb[0] = 0b10000000
    assert rt.bucket_index(bytes(msb)) == 0

    lsb = bytearray(32)
    lsb[31] = 1
    assert rt.bucket_index(bytes(lsb)) == 255

    computed = []
    expected = []
    for i in range(32):
        for bit in range(8):
            distance = bytearray(32)
            distance[i] = 1 << bit
            computed.append(rt.bucket_index(bytes(distance)))
            expected.append(i * 8 + (7 - bit))
    assert len(computed) == 256
    assert computed == expected