import pytest

from cloudlet import (Cloudlet, CloudletStatus, UtilizationModelFull, UtilizationModelNull,
                      UtilizationModelStochastic)
from errors import CloudletStatusError, ConfigurationError


def test_new_cloudlet_defaults():
    cl = Cloudlet(7, length=4000, pes_number=2, file_size=300, output_size=300)
    assert cl.status is CloudletStatus.CREATED
    assert cl.vm_id == -1
    assert cl.resource_id == -1
    assert cl.total_length == 8000
    assert cl.remaining_length == 8000
    assert cl.actual_cpu_time == 0.0
    assert isinstance(cl.utilization_model_cpu, UtilizationModelFull)


def test_status_walks_forward_and_stamps_times():
    cl = Cloudlet(1, length=1000)
    cl.set_status(CloudletStatus.QUEUED, 0.0)
    cl.set_status(CloudletStatus.RUNNING, 1.5)
    cl.set_status(CloudletStatus.SUCCESS, 3.5)
    assert cl.submission_time == 0.0
    assert cl.exec_start_time == 1.5
    assert cl.finish_time == 3.5
    assert cl.actual_cpu_time == pytest.approx(2.0)
    assert cl.wait_time == pytest.approx(1.5)
    assert cl.finished


@pytest.mark.parametrize("terminal", [CloudletStatus.SUCCESS, CloudletStatus.FAILED])
def test_terminal_status_is_final(terminal):
    cl = Cloudlet(1, length=1000)
    cl.set_status(CloudletStatus.QUEUED, 0.0)
    cl.set_status(CloudletStatus.RUNNING, 0.0)
    cl.set_status(terminal, 1.0)
    for status in CloudletStatus:
        with pytest.raises(CloudletStatusError):
            cl.set_status(status, 2.0)
    assert cl.status is terminal
    assert cl.finish_time == 1.0


def test_status_cannot_regress():
    cl = Cloudlet(1, length=1000)
    cl.set_status(CloudletStatus.QUEUED, 0.0)
    cl.set_status(CloudletStatus.RUNNING, 0.0)
    with pytest.raises(CloudletStatusError):
        cl.set_status(CloudletStatus.QUEUED, 1.0)


def test_can_fail_before_running():
    cl = Cloudlet(1, length=1000)
    cl.set_status(CloudletStatus.QUEUED, 0.0)
    cl.set_status(CloudletStatus.FAILED, 4.0)
    assert cl.exec_start_time is None
    assert cl.actual_cpu_time == 0.0


def test_processing_cost_includes_bandwidth_and_cpu_time():
    cl = Cloudlet(1, length=1000, file_size=300)
    cl.set_resource_parameter(resource_id=2, cost_per_sec=3.0, cost_per_bw=0.1)
    cl.set_status(CloudletStatus.QUEUED, 0.0)
    cl.set_status(CloudletStatus.RUNNING, 0.0)
    cl.set_status(CloudletStatus.SUCCESS, 4.0)
    assert cl.resource_id == 2
    assert cl.processing_cost == pytest.approx(30.0 + 12.0)


def test_record_has_output_columns():
    cl = Cloudlet(3, length=1000)
    cl.vm_id = 5
    record = cl.to_record()
    assert record == {
        "cloudlet_id": 3,
        "status": "CREATED",
        "datacenter_id": -1,
        "vm_id": 5,
        "actual_cpu_time": 0.0,
        "start_time": None,
        "finish_time": None,
    }


@pytest.mark.parametrize("kwargs", [
    {"length": 0},
    {"length": -10},
    {"length": 100, "pes_number": 0},
    {"length": 100, "file_size": -1},
])
def test_invalid_sizing_is_rejected(kwargs):
    with pytest.raises(ConfigurationError):
        Cloudlet(1, **kwargs)


def test_utilization_models():
    assert UtilizationModelFull().get_utilization(10.0) == 1.0
    assert UtilizationModelNull().get_utilization(10.0) == 0.0

    model = UtilizationModelStochastic(seed=42)
    first = model.get_utilization(1.0)
    assert 0.0 <= first <= 1.0
    assert model.get_utilization(1.0) == first
    assert UtilizationModelStochastic(seed=42).get_utilization(1.0) == first
