"""ZeroMQ transport backend."""

from .client import Client, Subscription
from .broker import Forwarder
