# datacenter.py

import logging
from enum import Enum

from cloudlet import CloudletStatus
from cloudlet_scheduler import CloudletSchedulerSpaceShared
from engine import EventType, SimEntity
from errors import ConfigurationError
from provisioner import BwProvisionerSimple, PeProvisionerSimple, RamProvisionerSimple, StorageProvisionerSimple
from schedule import VmSchedulerSpaceShared

logger = logging.getLogger(__name__)


class PeStatus(Enum):
    FREE = "FREE"
    BUSY = "BUSY"
    FAILED = "FAILED"


class Pe:
    def __init__(self, pe_id, provisioner):
        """
        A processing element (CPU core).

        :param pe_id: Identifier, unique within its host
        :param provisioner: PeProvisionerSimple holding the PE's MIPS rating,
            or a bare MIPS number
        """
        if not hasattr(provisioner, "allocate"):
            provisioner = PeProvisionerSimple(provisioner)
        self.pe_id = pe_id
        self.provisioner = provisioner
        self.status = PeStatus.FREE
        self.host = None

    @property
    def mips(self):
        return self.provisioner.capacity

    @property
    def is_free(self):
        return self.status is PeStatus.FREE

    def set_busy(self):
        self.status = PeStatus.BUSY

    def set_free(self):
        self.status = PeStatus.FREE

    def set_failed(self):
        self.status = PeStatus.FAILED

    def __repr__(self):
        return f"Pe({self.pe_id}, {self.mips} MIPS, {self.status.value})"


class Host:
    def __init__(self, host_id, ram_capacity, bw_capacity, storage_capacity, pe_list, vm_scheduler=None):
        """
        A physical machine.

        :param host_id: Unique identifier
        :param ram_capacity: RAM in MB
        :param bw_capacity: Bandwidth in Mbit/s
        :param storage_capacity: Storage in MB
        :param pe_list: list of Pe objects, owned by this host from now on
        :param vm_scheduler: Policy sharing PEs among VMs (space-shared by default)
        """
        if not pe_list:
            raise ConfigurationError(f"Host {host_id} needs at least one PE")
        pe_ids = [pe.pe_id for pe in pe_list]
        if len(set(pe_ids)) != len(pe_ids):
            raise ConfigurationError(f"Host {host_id} has duplicate PE ids: {pe_ids}")
        for pe in pe_list:
            if pe.host is not None and pe.host is not self:
                raise ConfigurationError(f"PE {pe.pe_id} already belongs to Host {pe.host.host_id}")

        self.host_id = host_id
        self.ram_provisioner = RamProvisionerSimple(ram_capacity)
        self.bw_provisioner = BwProvisionerSimple(bw_capacity)
        self.storage_provisioner = StorageProvisionerSimple(storage_capacity)
        self.pe_list = list(pe_list)
        for pe in self.pe_list:
            pe.host = self
        self.vm_scheduler = vm_scheduler or VmSchedulerSpaceShared(self.pe_list)
        self.vms = []
        self.datacenter = None

    @property
    def ram_capacity(self):
        return self.ram_provisioner.capacity

    @property
    def bw_capacity(self):
        return self.bw_provisioner.capacity

    @property
    def storage_capacity(self):
        return self.storage_provisioner.capacity

    @property
    def num_pes(self):
        return len(self.pe_list)

    @property
    def free_pes_number(self):
        return self.vm_scheduler.free_pes_number

    @property
    def total_mips(self):
        return sum(pe.mips for pe in self.pe_list)

    def cpu_utilization(self, current_time):
        total_demand = 0.0
        for vm in self.vms:
            mips_per_pe = vm.cloudlet_scheduler.mips_per_pe()
            total_demand += mips_per_pe * vm.cloudlet_scheduler.get_total_utilization_of_cpu(current_time)
        return min(total_demand / self.total_mips, 1.0)

    def ram_utilization(self):
        return self.ram_provisioner.allocated / self.ram_capacity

    def is_suitable_for_vm(self, vm):
        return (self.vm_scheduler.can_allocate(vm) and
                self.ram_provisioner.is_suitable(vm.uid, vm.ram) and
                self.bw_provisioner.is_suitable(vm.uid, vm.bw) and
                self.storage_provisioner.is_suitable(vm.uid, vm.storage))

    def allocate_vm(self, vm):
        """
        Reserve PEs, RAM, bandwidth and storage for a VM. Either everything is
        reserved or nothing is. Returns True on success.
        """
        if vm in self.vms:
            logger.warning(f"VM {vm.vm_id} is already on Host {self.host_id}")
            return False

        if not self.storage_provisioner.allocate(vm.uid, vm.storage):
            logger.info(f"Host {self.host_id} cannot allocate VM {vm.vm_id}: not enough storage")
            return False
        if not self.ram_provisioner.allocate(vm.uid, vm.ram):
            logger.info(f"Host {self.host_id} cannot allocate VM {vm.vm_id}: not enough RAM")
            self.storage_provisioner.deallocate(vm.uid)
            return False
        if not self.bw_provisioner.allocate(vm.uid, vm.bw):
            logger.info(f"Host {self.host_id} cannot allocate VM {vm.vm_id}: not enough bandwidth")
            self.storage_provisioner.deallocate(vm.uid)
            self.ram_provisioner.deallocate(vm.uid)
            return False
        if not self.vm_scheduler.allocate_pes_for_vm(vm):
            logger.info(f"Host {self.host_id} cannot allocate VM {vm.vm_id}: not enough free PEs")
            self.storage_provisioner.deallocate(vm.uid)
            self.ram_provisioner.deallocate(vm.uid)
            self.bw_provisioner.deallocate(vm.uid)
            return False

        self.vms.append(vm)
        vm.host = self
        logger.info(f"VM {vm.vm_id} allocated to Host {self.host_id}.")
        return True

    def deallocate_vm(self, vm):
        if vm not in self.vms:
            logger.warning(f"VM {vm.vm_id} not found on Host {self.host_id}.")
            return
        self.vm_scheduler.deallocate_pes_for_vm(vm)
        self.ram_provisioner.deallocate(vm.uid)
        self.bw_provisioner.deallocate(vm.uid)
        self.storage_provisioner.deallocate(vm.uid)
        self.vms.remove(vm)
        vm.host = None
        logger.info(f"VM {vm.vm_id} deallocated from Host {self.host_id}.")

    def update_vms_processing(self, current_time):
        """
        Advance every VM's cloudlets; return the earliest upcoming completion.
        """
        next_times = []
        for vm in self.vms:
            t = vm.update_cloudlets(current_time, self.vm_scheduler.get_allocated_mips_for_vm(vm))
            if t is not None:
                next_times.append(t)
        return min(next_times) if next_times else None

    def __str__(self):
        return (f"Host {self.host_id} | PEs: {self.num_pes} ({self.free_pes_number} free), "
                f"{self.total_mips} MIPS, RAM: {self.ram_capacity} MB, "
                f"BW: {self.bw_capacity}, Storage: {self.storage_capacity} MB")


class VM:
    def __init__(self, vm_id, user_id, mips, pes_number, ram, bw, storage, vmm="Xen",
                 cloudlet_scheduler=None):
        """
        VM represents a capacity request placed on one host.

        :param vm_id: Identifier, unique per owning user
        :param user_id: Entity id of the owning broker
        :param mips: MIPS requested on each PE
        :param pes_number: Number of PEs requested
        :param ram: RAM in MB
        :param bw: Bandwidth in Mbit/s
        :param storage: Image size in MB
        :param vmm: Virtual machine monitor label
        :param cloudlet_scheduler: Policy running cloudlets on the VM's PEs
        """
        for label, value in (("mips", mips), ("pes_number", pes_number)):
            if value <= 0:
                raise ConfigurationError(f"VM {vm_id}: {label} must be positive, got {value}")
        for label, value in (("ram", ram), ("bw", bw), ("storage", storage)):
            if value < 0:
                raise ConfigurationError(f"VM {vm_id}: {label} cannot be negative, got {value}")

        self.vm_id = vm_id
        self.user_id = user_id
        self.mips = mips
        self.pes_number = pes_number
        self.ram = ram
        self.bw = bw
        self.storage = storage
        self.vmm = vmm
        self.cloudlet_scheduler = cloudlet_scheduler or CloudletSchedulerSpaceShared()
        self.host = None

    @property
    def uid(self):
        """Owner and VM id together; VM ids are only unique per user."""
        return f"{self.user_id}-{self.vm_id}"

    @property
    def cpu(self):
        """Total MIPS across the VM's PEs."""
        return self.mips * self.pes_number

    @property
    def is_placed(self):
        return self.host is not None

    def submit_cloudlet(self, cloudlet, current_time):
        cloudlet.vm_id = self.vm_id
        return self.cloudlet_scheduler.submit(cloudlet, current_time)

    def update_cloudlets(self, current_time, mips_share=None):
        return self.cloudlet_scheduler.update_processing(current_time, mips_share)

    def __str__(self):
        where = f"Host {self.host.host_id}" if self.host else "unplaced"
        return (f"VM {self.vm_id} | {self.pes_number} x {self.mips} MIPS, RAM: {self.ram} MB, "
                f"BW: {self.bw}, Storage: {self.storage} MB, {where}")


class DatacenterCharacteristics:
    def __init__(self, arch, os, vmm, host_list, time_zone, cost_per_pe,
                 cost_per_mem, cost_per_storage, cost_per_bw):
        """
        Static description of a datacenter and its prices.

        :param cost_per_pe: Price of one second of processing
        :param cost_per_mem: Price per MB of RAM
        :param cost_per_storage: Price per MB of storage
        :param cost_per_bw: Price per MB transferred
        """
        for label, value in (("arch", arch), ("os", os), ("vmm", vmm)):
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"Datacenter characteristics: {label} must be a non-empty string")
        if not host_list:
            raise ConfigurationError("Datacenter characteristics: host list is empty")
        host_ids = [host.host_id for host in host_list]
        if len(set(host_ids)) != len(host_ids):
            raise ConfigurationError(f"Datacenter characteristics: duplicate host ids {host_ids}")
        if not -12.0 <= time_zone <= 14.0:
            raise ConfigurationError(f"Datacenter characteristics: invalid time zone {time_zone}")
        for label, value in (("cost_per_pe", cost_per_pe), ("cost_per_mem", cost_per_mem),
                             ("cost_per_storage", cost_per_storage), ("cost_per_bw", cost_per_bw)):
            if value < 0:
                raise ConfigurationError(f"Datacenter characteristics: {label} cannot be negative")

        self.arch = arch
        self.os = os
        self.vmm = vmm
        self.host_list = list(host_list)
        self.time_zone = time_zone
        self.cost_per_pe = cost_per_pe
        self.cost_per_mem = cost_per_mem
        self.cost_per_storage = cost_per_storage
        self.cost_per_bw = cost_per_bw
        self.resource_id = -1

    @property
    def number_of_pes(self):
        return sum(host.num_pes for host in self.host_list)

    @property
    def number_of_free_pes(self):
        return sum(host.free_pes_number for host in self.host_list)

    @property
    def mips_of_one_pe(self):
        return self.host_list[0].pe_list[0].mips


class Datacenter(SimEntity):
    def __init__(self, name, characteristics, vm_allocation_policy, engine, storage_list=None):
        """
        Resource provider entity: places VMs and runs their cloudlets.

        :param name: Entity name
        :param characteristics: DatacenterCharacteristics with the host list
        :param vm_allocation_policy: Policy placing VMs on those hosts
        :param engine: SimulationEngine this datacenter lives in
        :param storage_list: SAN storage devices (kept for reference)
        """
        if not name or not str(name).strip():
            raise ConfigurationError("Datacenter name must not be empty")
        if characteristics is None or not characteristics.host_list:
            raise ConfigurationError(f"{name}: datacenter needs at least one host")
        if {id(h) for h in vm_allocation_policy.hosts} != {id(h) for h in characteristics.host_list}:
            raise ConfigurationError(f"{name}: allocation policy and characteristics list different hosts")

        super().__init__(name, engine)
        self.characteristics = characteristics
        self.characteristics.resource_id = self.entity_id
        self.vm_allocation_policy = vm_allocation_policy
        self.storage_list = list(storage_list or [])
        self.vm_list = []
        self.debts = {}                 # {user_id: accumulated charge}
        self.utilization_history = []   # [{time, host_id, cpu_utilization, ram_utilization}]
        self._pending_updates = set()   # times of queued completion events

        for host in self.host_list:
            host.datacenter = self

    @property
    def host_list(self):
        return self.characteristics.host_list

    def process_event(self, event):
        if event.type is EventType.VM_CREATE:
            self._process_vm_create(event)
        elif event.type is EventType.VM_DESTROY:
            self._process_vm_destroy(event)
        elif event.type is EventType.CLOUDLET_SUBMIT:
            self._process_cloudlet_submit(event)
        elif event.type is EventType.CLOUDLET_COMPLETION_DUE:
            self._pending_updates.discard(event.time)
            self.update_cloudlet_processing()
        else:
            self.log(logging.WARNING, f"unknown event type {event.type}")

    def _process_vm_create(self, event):
        vm = event.data
        host = self.vm_allocation_policy.allocate_host_for_vm(vm)
        success = host is not None
        if success:
            self.vm_list.append(vm)
            vm.cloudlet_scheduler.set_mips_share(
                host.vm_scheduler.get_allocated_mips_for_vm(vm), self.clock)
            charge = (self.characteristics.cost_per_mem * vm.ram +
                      self.characteristics.cost_per_storage * vm.storage)
            self.debts[vm.user_id] = self.debts.get(vm.user_id, 0.0) + charge
        else:
            self.log(logging.WARNING, f"could not place VM #{vm.vm_id}")
        self.send_now(vm.user_id, EventType.VM_CREATE_ACK, (vm, success, host))

    def _process_vm_destroy(self, event):
        vm = event.data
        self.update_cloudlet_processing()
        if vm not in self.vm_list:
            self.log(logging.WARNING, f"VM #{vm.vm_id} is not running here")
            return

        failed = vm.cloudlet_scheduler.fail_all(self.clock)
        for cloudlet in failed:
            self.log(logging.WARNING, f"Cloudlet #{cloudlet.cloudlet_id} failed: VM #{vm.vm_id} destroyed")
        self._return_finished_cloudlets(vm)
        self.vm_allocation_policy.deallocate_host_for_vm(vm)
        self.vm_list.remove(vm)

    def _process_cloudlet_submit(self, event):
        cloudlet = event.data
        self.update_cloudlet_processing()

        vm = next((v for v in self.vm_list
                   if v.vm_id == cloudlet.vm_id and v.user_id == cloudlet.user_id), None)
        cloudlet.set_resource_parameter(self.entity_id, self.characteristics.cost_per_pe,
                                        self.characteristics.cost_per_bw)
        if vm is None:
            self.log(logging.WARNING, f"Cloudlet #{cloudlet.cloudlet_id} sent to unknown VM #{cloudlet.vm_id}")
            cloudlet.set_status(CloudletStatus.FAILED, self.clock)
            self.send_now(cloudlet.user_id, EventType.CLOUDLET_RETURN, cloudlet)
            return

        estimated_finish = vm.submit_cloudlet(cloudlet, self.clock)
        self._return_finished_cloudlets(vm)
        if estimated_finish is not None:
            self._schedule_update(estimated_finish)

    def update_cloudlet_processing(self):
        """
        Bring every host up to the current clock, hand back finished
        cloudlets and queue the next completion event.
        """
        now = self.clock
        next_times = []
        for host in self.host_list:
            t = host.update_vms_processing(now)
            if t is not None:
                next_times.append(t)
        for vm in list(self.vm_list):
            self._return_finished_cloudlets(vm)
        if next_times:
            self._schedule_update(min(next_times))
        self._record_utilization(now)

    def _schedule_update(self, time):
        if time in self._pending_updates:
            return
        self._pending_updates.add(time)
        self.send(self.entity_id, max(time - self.clock, 0.0), EventType.CLOUDLET_COMPLETION_DUE)

    def _return_finished_cloudlets(self, vm):
        for cloudlet in vm.cloudlet_scheduler.pop_finished():
            self.send_now(cloudlet.user_id, EventType.CLOUDLET_RETURN, cloudlet)

    def _record_utilization(self, now):
        for host in self.host_list:
            self.utilization_history.append({
                "time": now,
                "host_id": host.host_id,
                "cpu_utilization": host.cpu_utilization(now),
                "ram_utilization": host.ram_utilization(),
            })

    def shutdown_entity(self):
        self.log(logging.INFO, "is shutting down...")

    def __str__(self):
        return f"{self.name} (#{self.entity_id}) | {len(self.host_list)} hosts, {len(self.vm_list)} VMs"
