# cloudlet_scheduler.py

import logging
from abc import ABC, abstractmethod

import numpy as np

from cloudlet import CloudletStatus

logger = logging.getLogger(__name__)


class CloudletScheduler(ABC):
    """
    Decides how the cloudlets submitted to one VM share that VM's PEs.
    """

    def __init__(self):
        self.mips_share = []      # MIPS of each VM PE, handed over by the host
        self.previous_time = 0.0
        self.waiting = []         # QUEUED, in submission order
        self.running = []         # RUNNING
        self.finished = []        # terminal, not yet collected

    def set_mips_share(self, mips_share, current_time=None):
        self.mips_share = list(mips_share)
        if current_time is not None:
            self.previous_time = current_time

    @property
    def pes_number(self):
        return len(self.mips_share)

    def mips_per_pe(self):
        return float(np.mean(self.mips_share)) if self.mips_share else 0.0

    @abstractmethod
    def submit(self, cloudlet, current_time):
        """Accept a cloudlet; return its estimated finish time or None."""

    @abstractmethod
    def update_processing(self, current_time, mips_share=None):
        """Advance execution to `current_time`; return the next completion time or None."""

    @abstractmethod
    def fail_all(self, current_time):
        """Terminate every queued and running cloudlet as FAILED and return them."""

    def has_finished_cloudlets(self):
        return bool(self.finished)

    def pop_finished(self):
        finished, self.finished = self.finished, []
        return finished

    def is_idle(self):
        return not self.running and not self.waiting

    def get_total_utilization_of_cpu(self, time):
        return sum(cl.get_utilization_of_cpu(time) * cl.pes_number for cl in self.running)


class CloudletSchedulerSpaceShared(CloudletScheduler):
    def __init__(self):
        """
        Space-shared policy: each VM PE runs at most one cloudlet at a time and
        extra cloudlets wait in FIFO order.
        """
        super().__init__()
        self.pe_bindings = {}  # {vm pe index: cloudlet}

    @property
    def used_pes(self):
        return len(self.pe_bindings)

    def free_pe_indices(self):
        return [i for i in range(self.pes_number) if i not in self.pe_bindings]

    def execution_rate(self, cloudlet):
        return self.mips_per_pe() * cloudlet.pes_number

    def submit(self, cloudlet, current_time):
        if cloudlet.pes_number > self.pes_number:
            logger.warning(f"Cloudlet {cloudlet.cloudlet_id} needs {cloudlet.pes_number} PEs but "
                           f"its VM only has {self.pes_number}; failing it")
            cloudlet.set_status(CloudletStatus.FAILED, current_time)
            self.finished.append(cloudlet)
            return None

        cloudlet.set_status(CloudletStatus.QUEUED, current_time)
        self.waiting.append(cloudlet)
        return self.update_processing(current_time)

    def update_processing(self, current_time, mips_share=None):
        if mips_share is not None:
            self.mips_share = list(mips_share)

        elapsed = current_time - self.previous_time
        if elapsed > 0:
            for cloudlet in self.running:
                cloudlet.executed_length += self.execution_rate(cloudlet) * elapsed

        for cloudlet in list(self.running):
            if self._is_complete(cloudlet, current_time):
                self._finish(cloudlet, current_time)

        self._dispatch(current_time)
        self.previous_time = current_time
        return self.next_completion_time(current_time)

    def next_completion_time(self, current_time):
        times = [current_time + cloudlet.remaining_length / self.execution_rate(cloudlet)
                 for cloudlet in self.running]
        return min(times) if times else None

    def fail_all(self, current_time):
        failed = []
        for cloudlet in self.running + self.waiting:
            cloudlet.set_status(CloudletStatus.FAILED, current_time)
            failed.append(cloudlet)
        self.running = []
        self.waiting = []
        self.pe_bindings = {}
        self.finished.extend(failed)
        return failed

    def _is_complete(self, cloudlet, current_time):
        # Completion events are scheduled at start + length / rate, so floating
        # point leaves a sliver of work behind; treat it as done. The same goes
        # for work too small to move a large clock to a later float.
        if (cloudlet.executed_length >= cloudlet.total_length
                or np.isclose(cloudlet.executed_length, cloudlet.total_length, rtol=1e-9, atol=0.0)):
            return True
        return current_time + cloudlet.remaining_length / self.execution_rate(cloudlet) <= current_time

    def _finish(self, cloudlet, current_time):
        cloudlet.executed_length = cloudlet.total_length
        cloudlet.set_status(CloudletStatus.SUCCESS, current_time)
        self.running.remove(cloudlet)
        self.pe_bindings = {pe: cl for pe, cl in self.pe_bindings.items() if cl is not cloudlet}
        self.finished.append(cloudlet)
        logger.debug(f"Cloudlet {cloudlet.cloudlet_id} finished at {current_time:.2f}")

    def _dispatch(self, current_time):
        # Walk the queue in order; a cloudlet that does not fit yet keeps its
        # place while later, smaller ones may start.
        for cloudlet in list(self.waiting):
            free = self.free_pe_indices()
            if not free:
                break
            if cloudlet.pes_number > len(free):
                continue
            for pe in free[:cloudlet.pes_number]:
                self.pe_bindings[pe] = cloudlet
            self.waiting.remove(cloudlet)
            self.running.append(cloudlet)
            cloudlet.set_status(CloudletStatus.RUNNING, current_time)
            logger.debug(f"Cloudlet {cloudlet.cloudlet_id} started at {current_time:.2f} "
                         f"on VM PEs {free[:cloudlet.pes_number]}")

    def bound_pes(self, cloudlet):
        return sorted(pe for pe, cl in self.pe_bindings.items() if cl is cloudlet)
