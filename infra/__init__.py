"""Infrastructure modules for prime-liquidator"""

from .instance_lock import SingleInstanceLock, check_single_instance  # noqa: F401
from .metrics import MetricsRecorder, CycleStats  # noqa: F401

__all__ = [
	"SingleInstanceLock",
	"check_single_instance",
	"MetricsRecorder",
	"CycleStats",
]
