# Helper.py

from cloudlet import Cloudlet, UtilizationModelFull
from datacenter import VM, DatacenterCharacteristics, Host, Pe
from provisioner import PeProvisionerSimple

# ====================
# Host Configuration
# ====================
HOST_PES = 34          # each PE is given to one VM
HOST_MIPS = 25000
HOST_RAM = 45568       # MB
HOST_BW = 100000
HOST_STORAGE = 1000000

# ====================
# Datacenter Characteristics
# ====================
DC_ARCH = "x86"
DC_OS = "Linux"
DC_VMM = "Xen"
DC_TIME_ZONE = 10.0
DC_COST = 3.0               # per second of processing
DC_COST_PER_MEM = 0.05
DC_COST_PER_STORAGE = 0.1
DC_COST_PER_BW = 0.1

# ====================
# VM Configuration
# ====================
VM_MIPS = 250
VM_PES = 1
VM_RAM = 520       # MB
VM_BW = 1000
VM_SIZE = 256      # image size, MB
VM_VMM = "Xen"

# ====================
# Cloudlet Configuration
# ====================
CLOUDLET_LENGTH = 40000
CLOUDLET_FILE_SIZE = 300
CLOUDLET_OUTPUT_SIZE = 300
CLOUDLET_PES = 1


def create_pe_list(num_pes=HOST_PES, mips=HOST_MIPS):
    return [Pe(i, PeProvisionerSimple(mips)) for i in range(num_pes)]


def create_host_list(num_hosts, num_pes=HOST_PES, mips=HOST_MIPS, ram=HOST_RAM, bw=HOST_BW,
                     storage=HOST_STORAGE, start_id=0):
    hosts = []
    for i in range(num_hosts):
        host = Host(
            host_id=start_id + i,
            ram_capacity=ram,
            bw_capacity=bw,
            storage_capacity=storage,
            pe_list=create_pe_list(num_pes, mips),
        )
        hosts.append(host)
    return hosts


def create_characteristics(hosts, cost=DC_COST, cost_per_mem=DC_COST_PER_MEM,
                           cost_per_storage=DC_COST_PER_STORAGE, cost_per_bw=DC_COST_PER_BW):
    return DatacenterCharacteristics(DC_ARCH, DC_OS, DC_VMM, hosts, DC_TIME_ZONE,
                                     cost, cost_per_mem, cost_per_storage, cost_per_bw)


def create_vm_list(num_vms, user_id=None, start_id=0, mips=VM_MIPS, pes_number=VM_PES,
                   ram=VM_RAM, bw=VM_BW, storage=VM_SIZE):
    vm_list = []
    for i in range(num_vms):
        vm = VM(start_id + i, user_id, mips=mips, pes_number=pes_number, ram=ram, bw=bw,
                storage=storage, vmm=VM_VMM)
        vm_list.append(vm)
    return vm_list


def create_cloudlet_list(num_cloudlets, user_id=None, start_id=0, length=CLOUDLET_LENGTH,
                         pes_number=CLOUDLET_PES, file_size=CLOUDLET_FILE_SIZE,
                         output_size=CLOUDLET_OUTPUT_SIZE):
    utilization_model = UtilizationModelFull()
    cloudlets = []
    for i in range(num_cloudlets):
        cloudlet = Cloudlet(start_id + i, length, pes_number, file_size, output_size,
                            utilization_model, utilization_model, utilization_model)
        cloudlet.user_id = user_id
        cloudlets.append(cloudlet)
    return cloudlets
