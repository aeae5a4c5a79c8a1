"""
Metadata snapshot models shared by both roles.

The JSON produced by the backend and parsed by the frontend goes through
MetadataSnapshot on both sides, so field names and the NOT_AVAILABLE
sentinel cannot drift apart between independently deployed instances.
"""

from typing import Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


# Value used for any metadata field the environment cannot provide.
NOT_AVAILABLE = "unavailable"


class MetadataSnapshot(BaseModel):
    """One fully populated metadata record, built per request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    version: str
    hostname: str
    instance_id: str = Field(alias="instanceId")
    project_id: str = Field(alias="projectId")
    zone: str
    internal_ip: str = Field(alias="internalIP")
    external_ip: str = Field(alias="externalIP")
    request_headers: Dict[str, List[str]] = Field(alias="requestHeaders")
    client_address: str = Field(alias="clientAddress")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def metadata_fields(self) -> Dict[str, str]:
        """Host metadata only, keyed by wire name (used for rendering)."""
        return {
            "hostname": self.hostname,
            "instanceId": self.instance_id,
            "projectId": self.project_id,
            "zone": self.zone,
            "internalIP": self.internal_ip,
            "externalIP": self.external_ip,
        }


class BackendUnavailable(BaseModel):
    """Marker embedded in place of the backend snapshot when the call failed."""

    model_config = ConfigDict(frozen=True)

    status: Literal["unreachable"] = "unreachable"
    kind: str
    reason: str


class FrontendView(BaseModel):
    """What the frontend page renders: its own snapshot plus the backend's."""

    model_config = ConfigDict(frozen=True)

    local: MetadataSnapshot
    backend: Union[MetadataSnapshot, BackendUnavailable]

    @property
    def backend_reachable(self) -> bool:
        return isinstance(self.backend, MetadataSnapshot)
