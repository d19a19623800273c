import threading

from blockstream.channel import StreamItem
from blockstream.consumer import Consumer
from blockstream.consumer_producer import ConsumerProducer
from blockstream.producer import Producer


class CountingProducer(Producer):
    def operation_at(self, index):
        self.send(index, index)


class Doubler(ConsumerProducer):
    def operation(self):
        for item in self.items():
            self.send(item.id, item.data * 2)


class Sink(Consumer):
    def __init__(self, threads, prev):
        super().__init__(threads, prev)
        self.collected = []
        self._lock = threading.Lock()

    def operation(self):
        for item in self.items():
            with self._lock:
                self.collected.append(item)


def run_all(stages):
    threads = [threading.Thread(target=stage.run) for stage in stages]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


def test_pipeline_transforms_every_item():
    source = CountingProducer(max_threads=2, n_executions=20)
    stage = Doubler(3, source)
    sink = Sink(2, stage)
    run_all([source, stage, sink])
    assert sorted(sink.collected, key=lambda item: item.id) == [
        StreamItem(i, i * 2) for i in range(20)
    ]
    assert stage.out.producers_done()


def test_default_operation_passes_items_through():
    source = CountingProducer(n_executions=4)
    stage = ConsumerProducer(1, source)
    sink = Sink(1, stage)
    source.run_seq()
    stage.run_seq()
    sink.run_seq()
    assert sink.collected == [StreamItem(i, i) for i in range(4)]


def test_chained_stages_end_their_outputs():
    source = CountingProducer(n_executions=3)
    first = Doubler(1, source)
    second = Doubler(2, first)
    sink = Sink(1, second)
    run_all([source, first, second, sink])
    assert sorted(sink.collected, key=lambda item: item.id) == [
        StreamItem(i, i * 4) for i in range(3)
    ]
    assert first.out.producers_done() and second.out.producers_done()
    assert sink.finished()


def test_input_and_output_channels_are_distinct():
    source = CountingProducer(n_executions=1)
    stage = ConsumerProducer(1, source)
    assert stage.input is source.out
    assert stage.out is not source.out
    assert stage.add_consumer() == 0