"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from hostprov.core.models import ProvisioningConfig, HostProfile, Stage
"""

from hostprov.core.models.config import EnvMode, ProvisioningConfig
from hostprov.core.models.host import HostProfile, OsFamily
from hostprov.core.models.replication import (
    DatabaseCredentials,
    LogCoordinate,
    ReplicationOutcome,
    ReplicationPhase,
    ReplicationReport,
    ReplicationState,
)
from hostprov.core.models.stage import (
    FailurePolicy,
    PipelineReport,
    Stage,
    StageResult,
)

__all__ = [
    # replication.py
    "DatabaseCredentials",
    # config.py
    "EnvMode",
    # stage.py
    "FailurePolicy",
    # host.py
    "HostProfile",
    "LogCoordinate",
    "OsFamily",
    "PipelineReport",
    "ProvisioningConfig",
    "ReplicationOutcome",
    "ReplicationPhase",
    "ReplicationReport",
    "ReplicationState",
    "Stage",
    "StageResult",
]
