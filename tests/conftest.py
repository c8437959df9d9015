import matplotlib
import pytest

from datacenter import VM, Host, Pe
from engine import SimulationEngine
from provisioner import PeProvisionerSimple

matplotlib.use("Agg")


@pytest.fixture
def engine():
    return SimulationEngine()


@pytest.fixture
def make_host():
    def _make(host_id=0, num_pes=2, mips=1000, ram=4096, bw=10000, storage=100000):
        pe_list = [Pe(i, PeProvisionerSimple(mips)) for i in range(num_pes)]
        return Host(host_id, ram, bw, storage, pe_list)
    return _make


@pytest.fixture
def make_vm():
    def _make(vm_id=0, pes_number=1, mips=1000, ram=512, bw=1000, storage=1000, user_id=None):
        return VM(vm_id, user_id, mips=mips, pes_number=pes_number, ram=ram, bw=bw, storage=storage)
    return _make
