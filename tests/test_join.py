import threading

import pytest

from blockstream.channel import StreamItem
from blockstream.join import Join
from blockstream.producer import Producer


class ListProducer(Producer):
    def __init__(self, items, threads=1):
        super().__init__(threads, len(items))
        self._items = items

    def operation_at(self, index):
        item_id, data = self._items[index]
        self.send(item_id, data)


class SumJoin(Join):
    def exec(self, first, second):
        self.send(first.id, first.data + second.data)


def drain_items(join, sink):
    items = []
    while (item := join.out.pop(sink, 5)) is not None:
        items.append(item)
    return sorted(items, key=lambda item: item.id)


def drain(join, sink):
    return {item.id: item.data for item in drain_items(join, sink)}


def test_default_exec_pairs_payloads_by_id():
    left = ListProducer([(0, "a"), (1, "b"), (2, "c")])
    right = ListProducer([(2, "z"), (0, "x"), (1, "y")])
    join = Join(1, left, right)
    sink = join.add_consumer()
    left.run()
    right.run()
    join.run()
    assert drain(join, sink) == {0: ("a", "x"), 1: ("b", "y"), 2: ("c", "z")}
    assert join.unmatched == (set(), set())


def test_default_name():
    left = ListProducer([])
    right = ListProducer([])
    assert Join(1, left, right).name == "Join"
    assert Join(1, left, right, "HAD_D").name == "HAD_D"


def test_subclass_exec_combines_blocks():
    values = list(range(20))
    left = ListProducer([(i, v) for i, v in enumerate(values)], threads=3)
    right = ListProducer([(i, v * 10) for i, v in enumerate(values)], threads=2)
    join = SumJoin(2, left, right)
    sink = join.add_consumer()
    left.run()
    right.run()
    join.run()
    assert drain_items(join, sink) == [StreamItem(i, values[i] * 11) for i in range(20)]


def test_unmatched_ids_stay_pending():
    left = ListProducer([(0, 1), (5, 2)])
    right = ListProducer([(0, 3), (7, 4)])
    join = SumJoin(1, left, right)
    sink = join.add_consumer()
    left.run()
    right.run()
    join.run()
    assert drain_items(join, sink) == [StreamItem(0, 4)]
    assert join.unmatched == ({5}, {7})


def test_concurrent_pipeline():
    n = 50
    left = ListProducer([(i, i) for i in range(n)], threads=4)
    right = ListProducer([(i, 2 * i) for i in reversed(range(n))], threads=3)
    join = SumJoin(3, left, right)
    sink = join.add_consumer()
    threads = [
        threading.Thread(target=stage.run) for stage in (join, left, right)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)
    assert drain_items(join, sink) == [StreamItem(i, 3 * i) for i in range(n)]
    assert join.out.producers_done()


def test_exec_error_propagates_and_output_ends():
    class Failing(Join):
        def exec(self, first, second):
            raise ArithmeticError(first, second)

    left = ListProducer([(0, 1)])
    right = ListProducer([(0, 2)])
    join = Failing(1, left, right)
    left.run()
    right.run()
    with pytest.raises(ArithmeticError) as excinfo:
        join.run()
    assert excinfo.value.args == (StreamItem(0, 1), StreamItem(0, 2))
    assert join.out.producers_done()


def test_exec_called_directly_sends_pair():
    left = ListProducer([])
    right = ListProducer([])
    join = Join(1, left, right)
    sink = join.add_consumer()
    join.exec(StreamItem(3, "p"), StreamItem(3, "q"))
    assert join.out.pop(sink, 1) == StreamItem(3, ("p", "q"))