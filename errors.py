# errors.py


class SimulationError(Exception):
    """Base class for errors raised by the simulator."""


class ConfigurationError(SimulationError, ValueError):
    """Invalid sizing or setup detected while building entities."""


class CloudletStatusError(SimulationError):
    """A cloudlet was asked to move to a status it cannot reach."""
