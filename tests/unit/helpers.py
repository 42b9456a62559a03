"""Test helpers shared by the unit test suite.

Provides:
- ``run_async`` for driving coroutines from synchronous tests
- ``RecordingHandle``, a device handle that records activations
- ``write_certificate`` for creating self-signed identity certificates
"""

from __future__ import annotations

import asyncio
import datetime
from pathlib import Path
from typing import Any, Coroutine, List, Optional, Tuple, TypeVar

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from devicelink.core.commands.envelope import TypedValue


T = TypeVar("T")

VALID_ID = "a1b2c3d4e5f6a7b8c9d0e1f2a3b4c5d6"
OTHER_VALID_ID = "Z9_Y8_X7_W6_V5_U4_T3_S2_R1_Q0_PP"


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class RecordingHandle:
    """Device handle that records every activation."""

    def __init__(self, device_id: str, error: Optional[BaseException] = None):
        self._id = device_id
        self.error = error
        self.calls: List[Tuple[str, Optional[TypedValue]]] = []

    @property
    def id(self) -> str:
        return self._id

    def activate(self, action_name: str, target: Optional[TypedValue] = None) -> None:
        self.calls.append((action_name, target))
        if self.error is not None:
            raise self.error


class StaticRegistry:
    """Minimal handle source backed by a dict."""

    def __init__(self, *handles: Any):
        self.handles = {handle.id: handle for handle in handles}

    def get(self, device_id: str) -> Any:
        return self.handles.get(device_id)

    def snapshot(self) -> List[Any]:
        return list(self.handles.values())


def write_certificate(cert_path: Path, common_name: str, key_path: Optional[Path] = None) -> Path:
    """Write a self-signed PEM certificate whose subject CN is ``common_name``."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=3650))
        .sign(key, hashes.SHA256())
    )

    cert_path.parent.mkdir(parents=True, exist_ok=True)
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))

    if key_path is not None:
        key_path.write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
        )
    return cert_path
