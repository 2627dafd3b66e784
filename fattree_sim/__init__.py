"""Discrete-event simulation of a fat-tree network serving a parallel file system."""

__version__ = "0.1.0"

__all__ = [
    "queueing",
    "request",
    "kernel",
    "sink",
    "mds",
    "ost",
    "oss",
    "switch",
    "compute_node",
]