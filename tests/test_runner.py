import matplotlib.pyplot as plt
import pandas as pd
import pytest

from cloudlet import Cloudlet
from datacenter import VM, Host, Pe
from Runner import (cloudlet_table, plot_cloudlet_timeline, plot_utilization, print_cloudlet_list,
                    run_simulation, summarize, utilization_frame)


@pytest.fixture
def finished_run():
    host = Host(0, 4096, 10000, 100000, [Pe(0, 1000), Pe(1, 1000)])
    vm = VM(0, None, mips=1000, pes_number=1, ram=512, bw=1000, storage=1000)
    cloudlets = [Cloudlet(0, length=2000), Cloudlet(1, length=2000)]
    return run_simulation([host], [vm], cloudlets)


def test_cloudlet_table_columns(finished_run):
    broker, datacenter, _ = finished_run
    df = cloudlet_table(broker.get_cloudlet_received_list())
    assert list(df.columns) == ["Cloudlet ID", "STATUS", "Data center ID", "VM ID",
                                "Time", "Start Time", "Finish Time"]
    assert df["STATUS"].tolist() == ["SUCCESS", "SUCCESS"]
    assert df["Finish Time"].tolist() == [2.0, 4.0]
    assert (df["Data center ID"] == datacenter.entity_id).all()


def test_print_cloudlet_list(finished_run, capsys):
    broker, _, _ = finished_run
    print_cloudlet_list(broker.get_cloudlet_received_list())
    out = capsys.readouterr().out
    assert "========== OUTPUT ==========" in out
    assert "SUCCESS" in out
    assert "4.00" in out


def test_summarize(finished_run):
    broker, _, _ = finished_run
    stats = summarize(broker.get_cloudlet_received_list())
    assert stats == {"cloudlets": 2, "succeeded": 2, "failed": 0,
                     "makespan": 4.0, "mean_cpu_time": 2.0}


def test_utilization_samples(finished_run):
    _, datacenter, _ = finished_run
    df = utilization_frame(datacenter)
    assert isinstance(df, pd.DataFrame)
    assert set(df["host_id"]) == {0}
    # one of two PEs busy while cloudlets run
    running = df[(df["time"] > 0) & (df["time"] < 4)]
    assert not running.empty
    assert running["cpu_utilization"].eq(0.5).all()
    assert df["cpu_utilization"].between(0.0, 1.0).all()


def test_plots_build_figures(finished_run):
    broker, datacenter, _ = finished_run
    timeline = plot_cloudlet_timeline(broker.get_cloudlet_received_list(), show=False)
    utilization = plot_utilization(datacenter, show=False)
    assert timeline.axes[0].get_title() == "Cloudlet Execution Timeline"
    assert utilization.axes[0].get_title() == "CPU Utilization of Hosts"
    plt.close("all")
