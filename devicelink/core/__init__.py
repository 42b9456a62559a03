from .errors import DaemonError
from .service import DaemonService
from .shutdown_coordinator import ShutdownCoordinator, get_shutdown_coordinator

__all__ = [
    'DaemonError',
    'DaemonService',
    'ShutdownCoordinator',
    'get_shutdown_coordinator',
]
