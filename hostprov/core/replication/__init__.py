"""
Replication — master/slave bootstrap over a pluggable control surface.
"""

from hostprov.core.replication.bootstrapper import ReplicationBootstrapper
from hostprov.core.replication.control import ReplicationControl, Role
from hostprov.core.replication.mysql import MySQLDockerControl

__all__ = [
    "MySQLDockerControl",
    "ReplicationBootstrapper",
    "ReplicationControl",
    "Role",
]
