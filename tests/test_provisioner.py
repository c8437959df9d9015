import pytest

from errors import ConfigurationError
from provisioner import BwProvisionerSimple, RamProvisionerSimple, ResourceProvisioner


def test_allocate_within_capacity():
    ram = RamProvisionerSimple(1024)
    assert ram.allocate("vm-1", 512)
    assert ram.allocate("vm-2", 512)
    assert ram.available() == 0
    assert ram.allocated == 1024
    assert ram.allocated_for("vm-1") == 512


def test_allocate_beyond_capacity_fails_without_side_effects():
    bw = BwProvisionerSimple(1000)
    assert bw.allocate("vm-1", 600)
    assert not bw.allocate("vm-2", 500)
    assert bw.allocated == 600
    assert bw.allocated_for("vm-2") == 0


def test_reallocation_replaces_previous_grant():
    ram = RamProvisionerSimple(1000)
    assert ram.allocate("vm-1", 400)
    assert ram.allocate("vm-1", 900)
    assert ram.allocated == 900


def test_failed_reallocation_keeps_previous_grant():
    ram = RamProvisionerSimple(1000)
    ram.allocate("vm-1", 400)
    ram.allocate("vm-2", 500)
    assert not ram.allocate("vm-1", 600)
    assert ram.allocated_for("vm-1") == 400
    assert ram.allocated == 900


def test_deallocate_returns_released_amount():
    ram = RamProvisionerSimple(1000)
    ram.allocate("vm-1", 300)
    assert ram.deallocate("vm-1") == 300
    assert ram.deallocate("vm-1") == 0
    assert ram.available() == 1000


def test_is_suitable_counts_own_grant():
    ram = RamProvisionerSimple(1000)
    ram.allocate("vm-1", 800)
    assert ram.is_suitable("vm-1", 1000)
    assert not ram.is_suitable("vm-2", 300)


@pytest.mark.parametrize("capacity", [0, -5])
def test_non_positive_capacity_is_rejected(capacity):
    with pytest.raises(ConfigurationError):
        ResourceProvisioner(capacity, kind="ram")


def test_negative_amount_is_rejected():
    with pytest.raises(ValueError):
        RamProvisionerSimple(10).allocate("vm-1", -1)
