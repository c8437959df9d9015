# cloudlet.py

from abc import ABC, abstractmethod
from enum import Enum

import numpy as np

from errors import CloudletStatusError, ConfigurationError


class CloudletStatus(Enum):
    CREATED = "CREATED"
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self):
        return self in (CloudletStatus.SUCCESS, CloudletStatus.FAILED)


# Allowed forward moves. Terminal statuses have no way out.
_TRANSITIONS = {
    CloudletStatus.CREATED: {CloudletStatus.QUEUED, CloudletStatus.FAILED},
    CloudletStatus.QUEUED: {CloudletStatus.RUNNING, CloudletStatus.FAILED},
    CloudletStatus.RUNNING: {CloudletStatus.SUCCESS, CloudletStatus.FAILED},
    CloudletStatus.SUCCESS: set(),
    CloudletStatus.FAILED: set(),
}


class UtilizationModel(ABC):
    @abstractmethod
    def get_utilization(self, time):
        """Fraction (0 to 1) of the allotted resource used at `time`."""


class UtilizationModelFull(UtilizationModel):
    def get_utilization(self, time):
        return 1.0


class UtilizationModelNull(UtilizationModel):
    def get_utilization(self, time):
        return 0.0


class UtilizationModelStochastic(UtilizationModel):
    def __init__(self, seed=None):
        """
        Uniformly random utilization, drawn once per distinct time and
        remembered so repeated queries agree.

        :param seed: Seed for the numpy generator, for reproducible runs
        """
        self.rng = np.random.default_rng(seed)
        self.history = {}  # {time: utilization}

    def get_utilization(self, time):
        if time not in self.history:
            self.history[time] = float(self.rng.uniform(0.0, 1.0))
        return self.history[time]


class Cloudlet:
    def __init__(self, cloudlet_id, length, pes_number=1, file_size=0, output_size=0,
                 utilization_model_cpu=None, utilization_model_ram=None, utilization_model_bw=None):
        """
        A batch job executed on a VM.

        :param cloudlet_id: Unique identifier
        :param length: Work in MI (Million Instructions) executed on each PE it uses
        :param pes_number: Number of VM PEs the cloudlet needs at once
        :param file_size: Input size in MB, transferred before execution
        :param output_size: Output size in MB
        :param utilization_model_cpu: Share of its CPU the cloudlet actually uses over time
        :param utilization_model_ram: Share of VM RAM used over time
        :param utilization_model_bw: Share of VM bandwidth used over time
        """
        if length <= 0:
            raise ConfigurationError(f"Cloudlet {cloudlet_id}: length must be positive, got {length}")
        if pes_number < 1:
            raise ConfigurationError(f"Cloudlet {cloudlet_id}: needs at least one PE, got {pes_number}")
        if file_size < 0 or output_size < 0:
            raise ConfigurationError(f"Cloudlet {cloudlet_id}: file sizes cannot be negative")

        self.cloudlet_id = cloudlet_id
        self.length = length
        self.pes_number = pes_number
        self.file_size = file_size
        self.output_size = output_size
        self.utilization_model_cpu = utilization_model_cpu or UtilizationModelFull()
        self.utilization_model_ram = utilization_model_ram or UtilizationModelFull()
        self.utilization_model_bw = utilization_model_bw or UtilizationModelFull()

        self.user_id = None
        self.status = CloudletStatus.CREATED
        self.resource_id = -1
        self.vm_id = -1
        self.submission_time = None
        self.exec_start_time = None
        self.finish_time = None
        self.executed_length = 0.0

        # Set by the datacenter that runs the cloudlet
        self.cost_per_sec = 0.0
        self.accumulated_bw_cost = 0.0

    @property
    def total_length(self):
        """Work across all PEs the cloudlet occupies."""
        return self.length * self.pes_number

    @property
    def remaining_length(self):
        return max(self.total_length - self.executed_length, 0.0)

    @property
    def finished(self):
        return self.status.is_terminal

    @property
    def actual_cpu_time(self):
        if self.exec_start_time is None or self.finish_time is None:
            return 0.0
        return self.finish_time - self.exec_start_time

    @property
    def wait_time(self):
        if self.submission_time is None or self.exec_start_time is None:
            return 0.0
        return self.exec_start_time - self.submission_time

    @property
    def processing_cost(self):
        return self.accumulated_bw_cost + self.cost_per_sec * self.actual_cpu_time

    def set_resource_parameter(self, resource_id, cost_per_sec, cost_per_bw):
        self.resource_id = resource_id
        self.cost_per_sec = cost_per_sec
        self.accumulated_bw_cost = cost_per_bw * self.file_size

    def set_status(self, status, current_time=None):
        """
        Move the cloudlet forward in its life cycle and stamp the matching time.
        """
        if status not in _TRANSITIONS[self.status]:
            raise CloudletStatusError(
                f"Cloudlet {self.cloudlet_id}: cannot go from {self.status.value} to {status.value}")
        self.status = status

        if status is CloudletStatus.QUEUED:
            self.submission_time = current_time
        elif status is CloudletStatus.RUNNING:
            self.exec_start_time = current_time
        elif status.is_terminal:
            self.finish_time = current_time

    def get_utilization_of_cpu(self, time):
        return self.utilization_model_cpu.get_utilization(time)

    def get_utilization_of_ram(self, time):
        return self.utilization_model_ram.get_utilization(time)

    def get_utilization_of_bw(self, time):
        return self.utilization_model_bw.get_utilization(time)

    def to_record(self):
        """The per-cloudlet result row handed to reporting code."""
        return {
            "cloudlet_id": self.cloudlet_id,
            "status": self.status.value,
            "datacenter_id": self.resource_id,
            "vm_id": self.vm_id,
            "actual_cpu_time": self.actual_cpu_time,
            "start_time": self.exec_start_time,
            "finish_time": self.finish_time,
        }

    def __str__(self):
        if self.finished:
            state = self.status.value
        else:
            state = f"{self.status.value}, {self.remaining_length:.2f} MI remaining"
        return f"Cloudlet {self.cloudlet_id} | {state}"
