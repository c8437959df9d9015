# schedule.py
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class VmScheduler(ABC):
    def __init__(self, pe_list):
        """
        Host-level policy sharing the host's PEs among its VMs.

        :param pe_list: PEs of the host this scheduler serves
        """
        self.pe_list = pe_list
        self.pe_map = {}    # {vm uid: [Pe, ...]}
        self.mips_map = {}  # {vm uid: [mips per allotted PE, ...]}

    @abstractmethod
    def can_allocate(self, vm):
        pass

    @abstractmethod
    def allocate_pes_for_vm(self, vm):
        pass

    @abstractmethod
    def deallocate_pes_for_vm(self, vm):
        pass

    def get_pes_allocated_for_vm(self, vm):
        return list(self.pe_map.get(vm.uid, []))

    def get_allocated_mips_for_vm(self, vm):
        return list(self.mips_map.get(vm.uid, []))

    @property
    def free_pes(self):
        return [pe for pe in self.pe_list if pe.is_free]

    @property
    def free_pes_number(self):
        return len(self.free_pes)

    @property
    def allocated_pes_number(self):
        return sum(len(pes) for pes in self.pe_map.values())


class VmSchedulerSpaceShared(VmScheduler):
    """
    Gives each VM whole PEs for its lifetime on the host; a PE never serves
    two VMs at once.
    """

    def _select_pes(self, vm):
        candidates = [pe for pe in self.free_pes if pe.mips >= vm.mips]
        if len(candidates) < vm.pes_number:
            return None
        return candidates[:vm.pes_number]

    def can_allocate(self, vm):
        return vm.uid not in self.pe_map and self._select_pes(vm) is not None

    def allocate_pes_for_vm(self, vm):
        if vm.uid in self.pe_map:
            logger.warning(f"VM {vm.uid} already holds PEs on this host")
            return False

        selected = self._select_pes(vm)
        if selected is None:
            logger.debug(f"VM {vm.vm_id} needs {vm.pes_number} PEs of {vm.mips} MIPS, "
                         f"{self.free_pes_number} PEs free")
            return False

        for pe in selected:
            pe.provisioner.allocate(vm.uid, vm.mips)
            pe.set_busy()
        self.pe_map[vm.uid] = selected
        self.mips_map[vm.uid] = [vm.mips] * len(selected)
        return True

    def deallocate_pes_for_vm(self, vm):
        for pe in self.pe_map.pop(vm.uid, []):
            pe.provisioner.deallocate(vm.uid)
            pe.set_free()
        self.mips_map.pop(vm.uid, None)


class VmAllocationPolicy(ABC):
    def __init__(self, hosts):
        """
        Places VMs onto hosts.

        :param hosts: list of Host objects, scanned in this order
        """
        self.hosts = list(hosts)
        self.vm_table = {}  # {vm uid: Host}

    @abstractmethod
    def allocate_host_for_vm(self, vm):
        pass

    def deallocate_host_for_vm(self, vm):
        host = self.vm_table.pop(vm.uid, None)
        if host is not None:
            host.deallocate_vm(vm)
        return host

    def get_host(self, vm):
        return self.vm_table.get(vm.uid)


class VmAllocationPolicySimple(VmAllocationPolicy):
    def allocate_host_for_vm(self, vm):
        """
        Assigns a VM to the first host that can take all of it.
        Returns the host, or None when no host qualifies.
        """
        if vm.uid in self.vm_table:
            logger.warning(f"VM {vm.uid} is already placed on Host {self.vm_table[vm.uid].host_id}")
            return None

        candidate_host = self._select_host(vm)

        # The host re-checks every resource and rolls back on a shortfall.
        if candidate_host and candidate_host.allocate_vm(vm):
            self.vm_table[vm.uid] = candidate_host
            logger.debug(f"Allocation policy: VM {vm.vm_id} assigned to Host {candidate_host.host_id}")
            return candidate_host

        logger.debug(f"Allocation policy: no suitable host found for VM {vm.vm_id}")
        return None

    def _select_host(self, vm):
        return self._first_fit(vm)

    def _first_fit(self, vm):
        for host in self.hosts:
            if host.is_suitable_for_vm(vm):
                return host
        return None
