# provisioner.py

import logging

from errors import ConfigurationError

logger = logging.getLogger(__name__)


class ResourceProvisioner:
    def __init__(self, capacity, kind="resource"):
        """
        Tracks how much of one resource kind is handed out to consumers.

        :param capacity: Total amount that can be allocated (MB, Mbit/s, MIPS...)
        :param kind: Label used in log messages ("ram", "bw", "storage", "pe")
        """
        if capacity <= 0:
            raise ConfigurationError(f"{kind} capacity must be positive, got {capacity}")
        self.kind = kind
        self.capacity = capacity
        self.allocations = {}  # {consumer_id: amount}

    @property
    def allocated(self):
        return sum(self.allocations.values())

    def available(self):
        return self.capacity - self.allocated

    def allocated_for(self, consumer_id):
        return self.allocations.get(consumer_id, 0)

    def is_suitable(self, consumer_id, amount):
        """
        Check whether `amount` could be granted, counting what the consumer
        already holds as reusable.
        """
        return amount <= self.available() + self.allocated_for(consumer_id)

    def allocate(self, consumer_id, amount):
        """
        Grant `amount` to a consumer. A previous grant to the same consumer is
        replaced; it is kept untouched when the new amount does not fit.
        Returns True on success, False otherwise.
        """
        if amount < 0:
            raise ValueError(f"Cannot allocate a negative {self.kind} amount: {amount}")

        previous = self.allocations.pop(consumer_id, None)
        if amount > self.available():
            if previous is not None:
                self.allocations[consumer_id] = previous
            logger.debug(f"{self.kind} provisioner: {amount} requested by {consumer_id}, "
                         f"only {self.available()} of {self.capacity} free")
            return False

        self.allocations[consumer_id] = amount
        return True

    def deallocate(self, consumer_id):
        """
        Release everything held by a consumer and return the released amount.
        """
        return self.allocations.pop(consumer_id, 0)

    def deallocate_all(self):
        self.allocations.clear()

    def __str__(self):
        return f"{self.kind.upper()} {self.allocated}/{self.capacity}"


class PeProvisionerSimple(ResourceProvisioner):
    """MIPS of a single processing element."""

    def __init__(self, mips):
        super().__init__(mips, kind="pe")


class RamProvisionerSimple(ResourceProvisioner):
    def __init__(self, ram):
        super().__init__(ram, kind="ram")


class BwProvisionerSimple(ResourceProvisioner):
    def __init__(self, bw):
        super().__init__(bw, kind="bw")


class StorageProvisionerSimple(ResourceProvisioner):
    def __init__(self, storage):
        super().__init__(storage, kind="storage")
