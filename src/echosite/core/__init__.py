"""
Networking and concurrency: the listening socket, per-client connections and
the worker pool that runs them.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool, Worker, WorkerState, Task

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ThreadPool",
    "Worker",
    "WorkerState",
    "Task",
]
