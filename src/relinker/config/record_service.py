"""Record Service connection settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import StrEnum

from .env import require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy


class RecordOperation(StrEnum):
    GET_RECORD = "get_record"
    GET_RELATED = "get_related"
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True, slots=True)
class ScriptDeployment:
    """Script and deployment ids that address one operation on the service."""

    script_id: str
    deploy_id: str = "1"

    @classmethod
    def parse(cls, value: str) -> ScriptDeployment:
        script_id, _, deploy_id = value.partition(":")
        if not script_id.strip().isdigit() or (deploy_id and not deploy_id.strip().isdigit()):
            raise ConfigurationError(f"Expected '<script>:<deploy>' ids, got {value!r}")
        return cls(script_id=script_id.strip(), deploy_id=deploy_id.strip() or "1")

    def as_params(self) -> dict[str, str]:
        return {"script": self.script_id, "deploy": self.deploy_id}


DEFAULT_DEPLOYMENTS: dict[RecordOperation, ScriptDeployment] = {
    RecordOperation.GET_RECORD: ScriptDeployment("175"),
    RecordOperation.GET_RELATED: ScriptDeployment("178"),
    RecordOperation.UPSERT: ScriptDeployment("171"),
    RecordOperation.DELETE: ScriptDeployment("172"),
}


@dataclass(frozen=True, slots=True)
class RecordServiceConfig:
    resilience: ResilienceConfig
    deployments: dict[RecordOperation, ScriptDeployment]
    request_delay_seconds: float = 0.0


def get_record_service_config(*, request_delay_seconds: float = 0.0) -> RecordServiceConfig:
    values = require_env_vars(("RECORD_SERVICE_URL", "RECORD_SERVICE_TOKEN"))

    deployments = dict(DEFAULT_DEPLOYMENTS)
    for operation in RecordOperation:
        override = os.getenv(f"RECORD_SERVICE_{operation.upper()}_SCRIPT")
        if override and override.strip():
            deployments[operation] = ScriptDeployment.parse(override)

    resilience = ResilienceConfig(
        name="record_service",
        base_url=values["RECORD_SERVICE_URL"],
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        retry=RetryPolicy(total=3),
        default_headers={
            "Authorization": f"Bearer {values['RECORD_SERVICE_TOKEN']}",
            "Content-Type": "application/json",
        },
    )
    return RecordServiceConfig(
        resilience=resilience,
        deployments=deployments,
        request_delay_seconds=request_delay_seconds,
    )
