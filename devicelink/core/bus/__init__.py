"""Localhost bus between the primary instance and secondary invocations."""

from .client import BusClient
from .server import BusServer

__all__ = ["BusClient", "BusServer"]
