# A simple test includes one host with two PEs, one VM, and two cloudlets.

import logging

from cloudlet import Cloudlet
from datacenter import VM, Host, Pe
from Runner import print_cloudlet_list, run_simulation

logging.basicConfig(level=logging.INFO, format="%(message)s")

for vm_pes in (1, 2):
    host = Host(0, ram_capacity=4096, bw_capacity=10000, storage_capacity=100000,
                pe_list=[Pe(0, 1000), Pe(1, 1000)])

    # Each cloudlet needs 2000 MI on one PE: 2 s at 1000 MIPS
    vm = VM(0, None, mips=1000, pes_number=vm_pes, ram=512, bw=1000, storage=1000)
    cloudlets = [Cloudlet(0, length=2000), Cloudlet(1, length=2000)]

    print(f"\nStart Simulation with a {vm_pes}-PE VM")
    broker, datacenter, engine = run_simulation([host], [vm], cloudlets)

    print_cloudlet_list(broker.get_cloudlet_received_list())
    print(f"Simulation finished at t={engine.clock:.2f}s")
