import pytest

from engine import Event, EventQueue, EventType, SimEntity, SimulationEngine
from errors import SimulationError


class Recorder(SimEntity):
    """Remembers every event it receives, with the clock at delivery."""

    def __init__(self, name, engine):
        super().__init__(name, engine)
        self.received = []
        self.started = False
        self.shut_down = False

    def start_entity(self):
        self.started = True

    def process_event(self, event):
        self.received.append((self.clock, event.data))

    def shutdown_entity(self):
        self.shut_down = True


def test_queue_orders_by_time_then_enqueue_order():
    queue = EventQueue()
    for time, label in [(2.0, "c"), (1.0, "a"), (2.0, "d"), (1.0, "b")]:
        queue.push(Event(time=time, type=EventType.CLOUDLET_SUBMIT, source=0, destination=0, data=label))
    assert len(queue) == 4
    assert queue.peek().data == "a"
    assert [queue.pop().data for _ in range(4)] == ["a", "b", "c", "d"]
    assert queue.pop() is None
    assert queue.is_empty()


def test_engine_advances_clock_and_delivers_in_order(engine):
    sink = Recorder("sink", engine)
    for delay, label in [(5.0, "late"), (1.0, "early"), (1.0, "early-second"), (0.0, "now")]:
        engine.send(sink.entity_id, sink.entity_id, delay, EventType.CLOUDLET_SUBMIT, label)

    assert engine.run() == 5.0
    assert sink.started and sink.shut_down
    assert sink.received == [(0.0, "now"), (1.0, "early"), (1.0, "early-second"), (5.0, "late")]
    assert engine.finished
    assert engine.pending_events == 0


def test_handlers_can_schedule_follow_up_events(engine):
    class Chain(Recorder):
        def process_event(self, event):
            super().process_event(event)
            if event.data < 3:
                self.send(self.entity_id, 2.0, EventType.CLOUDLET_COMPLETION_DUE, event.data + 1)

    chain = Chain("chain", engine)
    chain.send_now(chain.entity_id, EventType.CLOUDLET_COMPLETION_DUE, 0)
    engine.run()
    assert chain.received == [(0.0, 0), (2.0, 1), (4.0, 2), (6.0, 3)]


def test_run_until_leaves_later_events_pending(engine):
    sink = Recorder("sink", engine)
    engine.send(sink.entity_id, sink.entity_id, 1.0, EventType.CLOUDLET_SUBMIT, "a")
    engine.send(sink.entity_id, sink.entity_id, 10.0, EventType.CLOUDLET_SUBMIT, "b")

    assert engine.run(until=5.0) == 5.0
    assert sink.received == [(1.0, "a")]
    assert engine.pending_events == 1
    assert not engine.finished

    engine.run()
    assert sink.received[-1] == (10.0, "b")


def test_end_of_simulation_stops_the_loop(engine):
    sink = Recorder("sink", engine)
    engine.send(sink.entity_id, sink.entity_id, 1.0, EventType.END_OF_SIMULATION)
    engine.send(sink.entity_id, sink.entity_id, 2.0, EventType.CLOUDLET_SUBMIT, "never")
    engine.run()
    assert sink.received == []
    assert sink.shut_down
    assert engine.clock == 1.0
    assert engine.pending_events == 1


def test_stop_from_a_handler(engine):
    class Stopper(Recorder):
        def process_event(self, event):
            super().process_event(event)
            self.engine.stop()

    stopper = Stopper("stopper", engine)
    for i in range(3):
        engine.send(stopper.entity_id, stopper.entity_id, float(i), EventType.CLOUDLET_SUBMIT, i)
    engine.run()
    assert stopper.received == [(0.0, 0)]
    assert engine.pending_events == 2


def test_send_validation(engine):
    sink = Recorder("sink", engine)
    with pytest.raises(SimulationError):
        engine.send(sink.entity_id, sink.entity_id, -1.0, EventType.CLOUDLET_SUBMIT)
    with pytest.raises(SimulationError):
        engine.send(sink.entity_id, 42, 0.0, EventType.CLOUDLET_SUBMIT)


def test_entities_cannot_join_a_started_run(engine):
    Recorder("sink", engine)
    engine.run()
    with pytest.raises(SimulationError):
        Recorder("late", engine)


def test_engines_keep_separate_clocks():
    first, second = SimulationEngine(), SimulationEngine()
    sink = Recorder("sink", first)
    first.send(sink.entity_id, sink.entity_id, 3.0, EventType.CLOUDLET_SUBMIT)
    first.run()
    assert first.clock == 3.0
    assert second.clock == 0.0


def test_events_are_only_kept_on_request():
    quiet, traced = SimulationEngine(), SimulationEngine(record_events=True)
    for engine in (quiet, traced):
        sink = Recorder("sink", engine)
        for i in range(3):
            engine.send(sink.entity_id, sink.entity_id, float(i), EventType.CLOUDLET_SUBMIT, i)
        engine.run()

    assert quiet.processed_count == traced.processed_count == 3
    assert quiet.processed_events == []
    assert [e.data for e in traced.processed_events] == [0, 1, 2]


def test_run_ends_after_every_user_entity_is_done(engine):
    class User(Recorder):
        user_entity = True

    early, late = User("early", engine), User("late", engine)
    engine.send(early.entity_id, early.entity_id, 1.0, EventType.END_OF_SIMULATION)
    engine.send(late.entity_id, late.entity_id, 2.0, EventType.CLOUDLET_SUBMIT, "still running")
    engine.send(late.entity_id, late.entity_id, 3.0, EventType.END_OF_SIMULATION)
    engine.send(late.entity_id, late.entity_id, 5.0, EventType.CLOUDLET_SUBMIT, "never")
    engine.run()

    assert late.received == [(2.0, "still running")]
    assert engine.finished
    assert engine.clock == 3.0
    assert engine.pending_events == 1
