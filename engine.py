# engine.py
"""
Discrete-event core: a time-ordered event queue, the entities that exchange
events, and the engine that owns the simulated clock.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum

from errors import SimulationError

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    VM_CREATE = "vm_create"
    VM_CREATE_ACK = "vm_create_ack"
    VM_DESTROY = "vm_destroy"
    CLOUDLET_SUBMIT = "cloudlet_submit"
    CLOUDLET_RETURN = "cloudlet_return"
    CLOUDLET_COMPLETION_DUE = "cloudlet_completion_due"
    END_OF_SIMULATION = "end_of_simulation"


@dataclass
class Event:
    time: float
    type: EventType
    source: int
    destination: int
    data: object = None
    seq: int = field(default=-1, compare=False)


class EventQueue:
    """Min-heap keyed by (time, enqueue sequence): equal times pop FIFO."""

    def __init__(self):
        self._queue = []  # [(time, seq, Event)]
        self._counter = itertools.count()

    def push(self, event):
        event.seq = next(self._counter)
        heapq.heappush(self._queue, (event.time, event.seq, event))
        return event

    def pop(self):
        if not self._queue:
            return None
        return heapq.heappop(self._queue)[2]

    def peek(self):
        return self._queue[0][2] if self._queue else None

    def is_empty(self):
        return not self._queue

    def __len__(self):
        return len(self._queue)

    def __iter__(self):
        return (entry[2] for entry in sorted(self._queue))


class SimEntity:
    """
    Something that sends and receives events. Entities register with an
    engine at construction and read the clock from it.
    """

    user_entity = False  # acts for a user and ends its own part of the run

    def __init__(self, name, engine):
        self.name = name
        self.engine = engine
        self.entity_id = engine.register(self)

    @property
    def clock(self):
        return self.engine.clock

    def send(self, destination, delay, event_type, data=None):
        return self.engine.send(self.entity_id, destination, delay, event_type, data)

    def send_now(self, destination, event_type, data=None):
        return self.send(destination, 0.0, event_type, data)

    def start_entity(self):
        """Called once when the engine starts running."""

    def process_event(self, event):
        raise NotImplementedError

    def shutdown_entity(self):
        """Called once when the simulation ends."""

    def log(self, level, message):
        logging.getLogger(type(self).__module__).log(level, f"{self.clock:.2f}: {self.name}: {message}")


class SimulationEngine:
    def __init__(self, record_events=False):
        """
        :param record_events: Keep every processed event in `processed_events`
        """
        self._clock = 0.0
        self.event_queue = EventQueue()
        self.entities = []
        self.record_events = record_events
        self.processed_events = []
        self.processed_count = 0
        self._ended_users = set()  # user entities that sent END_OF_SIMULATION
        self.running = False
        self.finished = False
        self._started = False
        self._stop_requested = False

    @property
    def clock(self):
        return self._clock

    def register(self, entity):
        if self._started:
            raise SimulationError(f"Cannot register {entity.name} after the simulation started")
        self.entities.append(entity)
        return len(self.entities) - 1

    def get_entity(self, entity_id):
        if not 0 <= entity_id < len(self.entities):
            raise SimulationError(f"Unknown entity id {entity_id}")
        return self.entities[entity_id]

    def get_entity_by_name(self, name):
        return next((e for e in self.entities if e.name == name), None)

    def send(self, source, destination, delay, event_type, data=None):
        if delay < 0:
            raise SimulationError(f"Send delay can't be negative: {delay}")
        self.get_entity(destination)
        event = Event(time=self._clock + delay, type=event_type,
                      source=source, destination=destination, data=data)
        return self.event_queue.push(event)

    @property
    def pending_events(self):
        return len(self.event_queue)

    def stop(self):
        """Ask the loop to return after the event being processed."""
        self._stop_requested = True

    def run(self, until=None):
        """
        Process events until none remain, `stop()` is called, every user entity
        has sent END_OF_SIMULATION or the next event lies beyond `until`.
        Returns the final clock.
        """
        if not self._started:
            self._started = True
            logger.info("Starting simulation...")
            for entity in list(self.entities):
                entity.start_entity()

        self.running = True
        self._stop_requested = False
        while not self.event_queue.is_empty() and not self._stop_requested:
            if until is not None and self.event_queue.peek().time > until:
                self._clock = max(self._clock, until)
                break

            event = self.event_queue.pop()
            if event.time < self._clock:
                raise SimulationError(f"Event {event.type.value} at {event.time} is in the past "
                                      f"(clock {self._clock})")
            self._clock = event.time
            self.processed_count += 1
            if self.record_events:
                self.processed_events.append(event)
            logger.debug(f"{self._clock:.2f}: processing {event.type.value} "
                         f"from #{event.source} to #{event.destination}")

            if event.type is EventType.END_OF_SIMULATION:
                if self._all_users_ended(event.source):
                    self._finish()
                    break
                continue
            self.get_entity(event.destination).process_event(event)

        self.running = False
        if self.event_queue.is_empty() and not self.finished:
            self._finish()
        return self._clock

    def _all_users_ended(self, source):
        """
        END_OF_SIMULATION from a user entity only counts once every user
        entity has sent one; from any other entity it ends the run at once.
        """
        if not self.get_entity(source).user_entity:
            return True
        self._ended_users.add(source)
        users = {e.entity_id for e in self.entities if e.user_entity}
        return users <= self._ended_users

    def _finish(self):
        self.finished = True
        for entity in self.entities:
            entity.shutdown_entity()
        logger.info(f"Simulation completed at {self._clock:.2f}")
