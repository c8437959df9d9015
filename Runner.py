import logging

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from broker import DatacenterBroker
from datacenter import Datacenter
from engine import SimulationEngine
from Helper import create_characteristics
from schedule import VmAllocationPolicySimple

logger = logging.getLogger(__name__)

OUTPUT_COLUMNS = {
    "cloudlet_id": "Cloudlet ID",
    "status": "STATUS",
    "datacenter_id": "Data center ID",
    "vm_id": "VM ID",
    "actual_cpu_time": "Time",
    "start_time": "Start Time",
    "finish_time": "Finish Time",
}


def run_simulation(hosts, vms, cloudlets, characteristics=None, datacenter_name="Datacenter_1",
                   broker_name="Broker", until=None, record_events=False):
    """
    Build one datacenter and one broker around the given entities, run the
    simulation and return (broker, datacenter, engine).
    VMs and cloudlets without an owner are given to the broker.
    """
    engine = SimulationEngine(record_events=record_events)
    characteristics = characteristics or create_characteristics(hosts)
    datacenter = Datacenter(datacenter_name, characteristics, VmAllocationPolicySimple(hosts), engine, [])
    broker = DatacenterBroker(broker_name, engine)

    broker.submit_vm_list(vms)
    broker.submit_cloudlet_list(cloudlets)
    broker.run(until=until)

    logger.info(f"{len(broker.get_cloudlet_received_list())} of {len(cloudlets)} cloudlets "
                f"returned by t={engine.clock:.2f}")
    return broker, datacenter, engine


def cloudlet_table(cloudlets):
    """One row per cloudlet with the columns of the classic output listing."""
    df = pd.DataFrame([cl.to_record() for cl in cloudlets], columns=list(OUTPUT_COLUMNS))
    return df.rename(columns=OUTPUT_COLUMNS)


def print_cloudlet_list(cloudlets):
    df = cloudlet_table(cloudlets)
    print()
    print("========== OUTPUT ==========")
    print(df.to_string(index=False, float_format=lambda v: f"{v:.2f}", na_rep="-"))


def summarize(cloudlets):
    df = cloudlet_table(cloudlets)
    succeeded = df[df["STATUS"] == "SUCCESS"]
    return {
        "cloudlets": len(df),
        "succeeded": len(succeeded),
        "failed": int((df["STATUS"] == "FAILED").sum()),
        "makespan": float(succeeded["Finish Time"].max()) if len(succeeded) else 0.0,
        "mean_cpu_time": float(succeeded["Time"].mean()) if len(succeeded) else 0.0,
    }


def utilization_frame(datacenter):
    return pd.DataFrame(datacenter.utilization_history,
                        columns=["time", "host_id", "cpu_utilization", "ram_utilization"])


def plot_cloudlet_timeline(cloudlets, show=True):
    df = cloudlet_table(cloudlets).dropna(subset=["Start Time", "Finish Time"])
    vm_ids = sorted(df["VM ID"].unique())
    colors = plt.cm.tab20(np.linspace(0, 1, max(len(vm_ids), 1)))

    fig, ax = plt.subplots(figsize=(14, 6))
    for color, vm_id in zip(colors, vm_ids):
        rows = df[df["VM ID"] == vm_id]
        ax.barh(rows["Cloudlet ID"], rows["Finish Time"] - rows["Start Time"],
                left=rows["Start Time"], color=color, label=f"VM {vm_id}")
    ax.set_title("Cloudlet Execution Timeline")
    ax.set_xlabel("Simulated time (s)")
    ax.set_ylabel("Cloudlet ID")
    ax.grid(True)
    if len(vm_ids) <= 20:
        ax.legend(ncol=4, fontsize='small', loc='upper center', bbox_to_anchor=(0.5, -0.15))
    fig.tight_layout()
    if show:
        plt.show()
    return fig


def plot_utilization(datacenter, show=True):
    df = utilization_frame(datacenter)

    fig, ax = plt.subplots(figsize=(14, 6))
    for host_id, trace in df.groupby("host_id"):
        ax.step(trace["time"], trace["cpu_utilization"], where="post", label=f"Host {host_id}", alpha=0.8)
    ax.set_title("CPU Utilization of Hosts")
    ax.set_xlabel("Simulated time (s)")
    ax.set_ylabel("CPU Utilization (0–1)")
    ax.grid(True)
    ax.legend(ncol=4, fontsize='small', loc='upper center', bbox_to_anchor=(0.5, -0.15))
    fig.tight_layout()
    if show:
        plt.show()
    return fig
