"""
Exceptions raised by the topology package
"""


class TopologyError(Exception):
    """Base class for topology errors"""


class ResourceLoadError(TopologyError):
    """A resource file could not be read or parsed"""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load {path}: {reason}")
