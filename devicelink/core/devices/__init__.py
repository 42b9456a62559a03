from .identity import validate_id, validate_name
from .registry import ACTION_SIGNATURES, Device, DeviceRecord, DeviceRegistry

__all__ = [
    "ACTION_SIGNATURES",
    "Device",
    "DeviceRecord",
    "DeviceRegistry",
    "validate_id",
    "validate_name",
]
