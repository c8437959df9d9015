# broker.py

import logging

from cloudlet import CloudletStatus
from datacenter import Datacenter
from engine import EventType, SimEntity

class DatacenterBroker(SimEntity):
    user_entity = True

    def __init__(self, name, engine):
        """
        Acts on behalf of a user: asks datacenters for VMs, sends cloudlets
        to them and collects the results.

        :param name: Entity name
        :param engine: SimulationEngine the broker lives in
        """
        super().__init__(name, engine)
        self.vm_list = []                  # submitted VMs
        self.vms_created_list = []         # VMs placed somewhere
        self.cloudlet_list = []            # cloudlets not yet sent to a datacenter
        self.cloudlet_submitted_list = []
        self.cloudlet_received_list = []   # terminal cloudlets, in arrival order

        self.vm_to_datacenter = {}         # {vm_id: datacenter entity id}
        self.datacenter_ids = []
        self.datacenter_requested_ids = []
        self.vm_destroy_requests = {}      # {vm_id: simulated time}

        self.vms_requested = 0
        self.vms_acks = 0
        self.vms_destroyed = 0
        self.cloudlets_submitted = 0

    # ------------------------------
    # Caller-facing API
    # ------------------------------
    def submit_vm_list(self, vms):
        for vm in vms:
            if vm.user_id is None:
                vm.user_id = self.entity_id
        self.vm_list.extend(vms)

    def submit_cloudlet_list(self, cloudlets):
        for cloudlet in cloudlets:
            if cloudlet.user_id is None:
                cloudlet.user_id = self.entity_id
        self.cloudlet_list.extend(cloudlets)

    def bind_cloudlet_to_vm(self, cloudlet_id, vm_id):
        for cloudlet in self.cloudlet_list:
            if cloudlet.cloudlet_id == cloudlet_id:
                cloudlet.vm_id = vm_id
                return
        raise KeyError(f"Cloudlet {cloudlet_id} was not submitted to {self.name}")

    def schedule_vm_destroy(self, vm_id, time):
        """
        Destroy a VM at a given simulated time once it has been created.
        Cloudlets still queued or running on it then end as FAILED.
        """
        self.vm_destroy_requests[vm_id] = time

    def run(self, until=None):
        return self.engine.run(until=until)

    def get_cloudlet_received_list(self):
        return list(self.cloudlet_received_list)

    def get_vms_created_list(self):
        return list(self.vms_created_list)

    # ------------------------------
    # Event handling
    # ------------------------------
    def start_entity(self):
        self.log(logging.INFO, "is starting...")
        self.datacenter_ids = [e.entity_id for e in self.engine.entities if isinstance(e, Datacenter)]
        if not self.datacenter_ids:
            self.log(logging.ERROR, "no datacenter registered. Aborting")
            self._fail_unsent_cloudlets()
            self.finish_execution()
            return
        self.create_vms_in_datacenter(self.datacenter_ids[0])

    def process_event(self, event):
        if event.type is EventType.VM_CREATE_ACK:
            self.process_vm_create(event)
        elif event.type is EventType.CLOUDLET_RETURN:
            self.process_cloudlet_return(event)
        else:
            self.log(logging.WARNING, f"unknown event type {event.type}")

    def create_vms_in_datacenter(self, datacenter_id):
        datacenter = self.engine.get_entity(datacenter_id)
        requested = 0
        for vm in self.vm_list:
            if vm.vm_id not in self.vm_to_datacenter:
                self.log(logging.INFO, f"Trying to Create VM #{vm.vm_id} in {datacenter.name}")
                self.send_now(datacenter_id, EventType.VM_CREATE, vm)
                requested += 1
        self.datacenter_requested_ids.append(datacenter_id)
        self.vms_requested = requested
        self.vms_acks = 0
        if requested == 0:
            self.submit_cloudlets()

    def process_vm_create(self, event):
        vm, success, host = event.data
        datacenter = self.engine.get_entity(event.source)
        self.vms_acks += 1

        if success:
            self.vm_to_datacenter[vm.vm_id] = event.source
            self.vms_created_list.append(vm)
            self.log(logging.INFO, f"VM #{vm.vm_id} has been created in {datacenter.name}, "
                                   f"Host #{host.host_id}")
            if vm.vm_id in self.vm_destroy_requests:
                delay = max(self.vm_destroy_requests.pop(vm.vm_id) - self.clock, 0.0)
                self.send(event.source, delay, EventType.VM_DESTROY, vm)
        else:
            self.log(logging.WARNING, f"Creation of VM #{vm.vm_id} failed in {datacenter.name}")

        if self.vms_acks < self.vms_requested:
            return

        if len(self.vms_created_list) == len(self.vm_list):
            self.submit_cloudlets()
            return

        # Some VMs could not be placed: try the next datacenter
        for datacenter_id in self.datacenter_ids:
            if datacenter_id not in self.datacenter_requested_ids:
                self.create_vms_in_datacenter(datacenter_id)
                return

        if self.vms_created_list:
            self.submit_cloudlets()
        else:
            self.log(logging.ERROR, "none of the required VMs could be created. Aborting")
            self._fail_unsent_cloudlets()
            self.finish_execution()

    def submit_cloudlets(self):
        """
        Send every pending cloudlet to its VM's datacenter. Unbound cloudlets
        are spread round-robin over the created VMs in submission order.
        """
        if not self.vms_created_list:
            self._fail_unsent_cloudlets()

        vm_index = 0
        for cloudlet in list(self.cloudlet_list):
            if cloudlet.vm_id == -1:
                vm = self.vms_created_list[vm_index]
                vm_index = (vm_index + 1) % len(self.vms_created_list)
            else:
                vm = next((v for v in self.vms_created_list if v.vm_id == cloudlet.vm_id), None)
                if vm is None:
                    self.log(logging.WARNING, f"Cloudlet #{cloudlet.cloudlet_id}: bound VM "
                                              f"#{cloudlet.vm_id} not available")
                    self._fail_cloudlet(cloudlet)
                    continue

            cloudlet.vm_id = vm.vm_id
            self.log(logging.INFO, f"Sending cloudlet {cloudlet.cloudlet_id} to VM #{vm.vm_id}")
            self.send_now(self.vm_to_datacenter[vm.vm_id], EventType.CLOUDLET_SUBMIT, cloudlet)
            self.cloudlets_submitted += 1
            self.cloudlet_submitted_list.append(cloudlet)
            self.cloudlet_list.remove(cloudlet)

        self._check_completion()

    def process_cloudlet_return(self, event):
        cloudlet = event.data
        if cloudlet in self.cloudlet_received_list:
            self.log(logging.WARNING, f"Cloudlet {cloudlet.cloudlet_id} returned twice; ignored")
            return
        self.cloudlet_received_list.append(cloudlet)
        self.cloudlets_submitted -= 1
        self.log(logging.INFO, f"Cloudlet {cloudlet.cloudlet_id} received ({cloudlet.status.value})")
        self._check_completion()

    def _check_completion(self):
        if not self.cloudlet_list and self.cloudlets_submitted == 0:
            self.log(logging.INFO, "All Cloudlets executed. Finishing...")
            self.clear_datacenters()
            self.finish_execution()

    def clear_datacenters(self):
        for vm in self.vms_created_list:
            if not vm.is_placed:
                continue  # already destroyed on request
            self.log(logging.DEBUG, f"Destroying VM #{vm.vm_id}")
            self.send_now(self.vm_to_datacenter[vm.vm_id], EventType.VM_DESTROY, vm)
            self.vms_destroyed += 1
        self.vms_created_list = []

    def finish_execution(self):
        self.send_now(self.entity_id, EventType.END_OF_SIMULATION)

    def _fail_cloudlet(self, cloudlet):
        cloudlet.set_status(CloudletStatus.FAILED, self.clock)
        self.cloudlet_list.remove(cloudlet)
        self.cloudlet_received_list.append(cloudlet)

    def _fail_unsent_cloudlets(self):
        for cloudlet in list(self.cloudlet_list):
            self._fail_cloudlet(cloudlet)

    def shutdown_entity(self):
        self.log(logging.INFO, "is shutting down...")
