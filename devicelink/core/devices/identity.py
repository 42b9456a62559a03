"""Device identifier and name validation, and local certificate identity.

A device id is exactly ``DEVICE_ID_LENGTH`` characters from
``[A-Za-z0-9_]``. The local id is the common name of this host's
certificate, so replacing the certificate replaces the id.
"""

from __future__ import annotations

import re
import socket
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from devicelink.core.logging_utils import get_module_logger

logger = get_module_logger("Identity")

DEVICE_ID_LENGTH = 32
MAX_NAME_LENGTH = 32

_DEVICE_ID_PATTERN = re.compile(rf"^[A-Za-z0-9_]{{{DEVICE_ID_LENGTH}}}$")


def validate_id(device_id: object) -> bool:
    return isinstance(device_id, str) and _DEVICE_ID_PATTERN.fullmatch(device_id) is not None


def validate_name(name: object) -> bool:
    if not isinstance(name, str):
        return False
    if not name.strip():
        return False
    return len(name) <= MAX_NAME_LENGTH and name.isprintable()


def normalize_name(name: str) -> str:
    """Strip non-printable characters and clamp to the name length limit."""
    printable = "".join(ch for ch in name if ch.isprintable())
    return printable.strip()[:MAX_NAME_LENGTH]


def default_device_name() -> str:
    name = normalize_name(socket.gethostname())
    return name if validate_name(name) else "devicelink"


def read_certificate_common_name(cert_path: Path) -> Optional[str]:
    """Return the certificate's subject common name.

    Raises ``OSError`` when the file cannot be read and ``ValueError`` when
    it is not a PEM certificate. Returns ``None`` if the subject carries no
    common name.
    """
    data = Path(cert_path).read_bytes()
    certificate = x509.load_pem_x509_certificate(data)
    attributes = certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return None
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8", "replace")


__all__ = [
    "DEVICE_ID_LENGTH",
    "MAX_NAME_LENGTH",
    "default_device_name",
    "normalize_name",
    "read_certificate_common_name",
    "validate_id",
    "validate_name",
]
