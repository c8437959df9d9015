# Space-shared allocation: two hosts with 34 PEs each, 68 one-PE VMs and 178 cloudlets.

import logging

from broker import DatacenterBroker
from datacenter import Datacenter
from engine import SimulationEngine
from Helper import create_characteristics, create_cloudlet_list, create_host_list, create_vm_list
from Runner import plot_cloudlet_timeline, plot_utilization, print_cloudlet_list, summarize
from schedule import VmAllocationPolicySimple

NUM_HOSTS = 2
NUM_VMS = 68
NUM_CLOUDLETS = 178

logging.basicConfig(level=logging.WARNING, format="%(message)s")
print("Starting Space-Shared Allocation Policy")

engine = SimulationEngine()

# ----- SETUP DATACENTER -----
hosts = create_host_list(NUM_HOSTS)
datacenter = Datacenter("Datacenter_1", create_characteristics(hosts),
                        VmAllocationPolicySimple(hosts), engine, storage_list=[])

# ----- SETUP BROKER, VMs AND CLOUDLETS -----
broker = DatacenterBroker("Broker", engine)
vms = create_vm_list(NUM_VMS, user_id=broker.entity_id)
cloudlets = create_cloudlet_list(NUM_CLOUDLETS, user_id=broker.entity_id)

broker.submit_vm_list(vms)
broker.submit_cloudlet_list(cloudlets)

# ----- SIMULATION -----
broker.run()

received = broker.get_cloudlet_received_list()
print_cloudlet_list(received)

stats = summarize(received)
print(f"\n{stats['succeeded']} of {stats['cloudlets']} cloudlets succeeded, "
      f"makespan {stats['makespan']:.2f}s, mean CPU time {stats['mean_cpu_time']:.2f}s")
print(f"Debt of {broker.name}: {datacenter.debts.get(broker.entity_id, 0.0):.2f}")
print("Space-Shared Allocation Policy finished!")

plot_cloudlet_timeline(received)
plot_utilization(datacenter)
