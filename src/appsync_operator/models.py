"""Data models for App resources, their status and stage results."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from .constants import CONDITION_TRUE


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_time(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


@dataclass
class StageResult:
    """Outcome of one external operation (fetch, template, deploy, inspect).

    ``finished`` is False while a long-running operation (deploy) is still
    in progress and the result is only a snapshot.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    error: BaseException | None = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    finished: bool = True

    @classmethod
    def from_error(cls, error: BaseException) -> StageResult:
        """Build a failed result that carries only an error."""
        return cls(exit_code=-1, error=error, updated_at=utcnow())

    def error_str(self) -> str:
        if self.error is None:
            return ""
        return str(self.error)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def attach_error(self, message: str, error: BaseException | None) -> StageResult:
        """Wrap ``error`` with ``message`` (a format with one ``{}``) and attach it.

        A None error leaves the result untouched.
        """
        if error is not None:
            wrapped = RuntimeError(message.format(error))
            wrapped.__cause__ = error
            self.error = wrapped
        return self

    def is_empty(self) -> bool:
        return not self.stdout and not self.stderr and self.exit_code == 0 and self.error is None

    def with_friendly_strings(self) -> StageResult:
        """Strip trailing whitespace per line so output renders as YAML block text."""
        return replace(
            self,
            stdout=_friendly(self.stdout),
            stderr=_friendly(self.stderr),
        )


def _friendly(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.splitlines())


class ConditionType(str, Enum):
    """Lifecycle phase or outcome an App is in."""

    RECONCILING = "Reconciling"
    RECONCILE_SUCCEEDED = "ReconcileSucceeded"
    RECONCILE_FAILED = "ReconcileFailed"
    DELETING = "Deleting"
    DELETE_FAILED = "DeleteFailed"


@dataclass(frozen=True)
class AppCondition:
    type: ConditionType
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type.value, "status": CONDITION_TRUE}
        if self.message:
            data["message"] = self.message
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppCondition:
        return cls(type=ConditionType(data["type"]), message=data.get("message", ""))


@dataclass(frozen=True)
class GroupKind:
    group: str
    kind: str


@dataclass(frozen=True)
class DeployMetadata:
    """Objects last touched by the deploy backend and how they are labelled."""

    label_key: str = ""
    label_value: str = ""
    last_change_namespaces: tuple[str, ...] = ()
    used_group_kinds: tuple[GroupKind, ...] = ()


@dataclass
class AssociatedResources:
    label: str = ""
    namespaces: list[str] = field(default_factory=list)
    group_kinds: list[GroupKind] = field(default_factory=list)

    @classmethod
    def from_metadata(cls, metadata: DeployMetadata) -> AssociatedResources:
        return cls(
            label=f"{metadata.label_key}={metadata.label_value}",
            namespaces=list(metadata.last_change_namespaces),
            group_kinds=list(metadata.used_group_kinds),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "associatedResources": {
                "label": self.label,
                "namespaces": list(self.namespaces),
                "groupKinds": [{"group": gk.group, "kind": gk.kind} for gk in self.group_kinds],
            }
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> AssociatedResources | None:
        if not data:
            return None
        assoc = data.get("associatedResources", {})
        return cls(
            label=assoc.get("label", ""),
            namespaces=list(assoc.get("namespaces", [])),
            group_kinds=[GroupKind(gk.get("group", ""), gk.get("kind", "")) for gk in assoc.get("groupKinds", [])],
        )


@dataclass
class StageStatus:
    """A StageResult as recorded in App status.

    Errors are stored as text: once copied into status the record no longer
    references live exceptions.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    error: str = ""
    started_at: datetime | None = None
    updated_at: datetime | None = None
    finished: bool = True
    kapp: AssociatedResources | None = None

    @classmethod
    def from_result(
        cls,
        result: StageResult,
        started_at: datetime | None = None,
        kapp: AssociatedResources | None = None,
    ) -> StageStatus:
        return cls(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            error=result.error_str(),
            started_at=started_at,
            updated_at=utcnow(),
            finished=result.finished,
            kapp=kapp,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "error": self.error,
            "finished": self.finished,
            "startedAt": format_time(self.started_at),
            "updatedAt": format_time(self.updated_at),
        }
        if self.kapp is not None:
            data["kapp"] = self.kapp.to_dict()
        return {key: value for key, value in data.items() if value is not None}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> StageStatus | None:
        if data is None:
            return None
        return cls(
            stdout=data.get("stdout", ""),
            stderr=data.get("stderr", ""),
            exit_code=int(data.get("exitCode", 0)),
            error=data.get("error", ""),
            started_at=parse_time(data.get("startedAt")),
            updated_at=parse_time(data.get("updatedAt")),
            finished=bool(data.get("finished", True)),
            kapp=AssociatedResources.from_dict(data.get("kapp")),
        )


STAGES = ("fetch", "template", "deploy", "inspect")


@dataclass
class AppStatus:
    """Observed state of an App.

    Holds at most one condition; replacing it is the only way to change it.
    """

    observed_generation: int = 0
    fetch: StageStatus | None = None
    template: StageStatus | None = None
    deploy: StageStatus | None = None
    inspect: StageStatus | None = None
    consecutive_reconcile_failures: int = 0
    consecutive_reconcile_successes: int = 0
    condition: AppCondition | None = None
    friendly_description: str = ""
    useful_error_message: str = ""

    @property
    def conditions(self) -> list[AppCondition]:
        return [self.condition] if self.condition is not None else []

    def has_condition(self, condition_type: ConditionType) -> bool:
        return self.condition is not None and self.condition.type == condition_type

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "observedGeneration": self.observed_generation,
            "conditions": [cond.to_dict() for cond in self.conditions],
            "consecutiveReconcileFailures": self.consecutive_reconcile_failures,
            "consecutiveReconcileSuccesses": self.consecutive_reconcile_successes,
            "friendlyDescription": self.friendly_description,
            "usefulErrorMessage": self.useful_error_message,
        }
        for stage in STAGES:
            record = getattr(self, stage)
            data[stage] = record.to_dict() if record is not None else None
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> AppStatus:
        data = data or {}
        conditions = data.get("conditions") or []
        # Older writers may have left several conditions behind; the last one wins.
        condition = AppCondition.from_dict(conditions[-1]) if conditions else None
        return cls(
            observed_generation=int(data.get("observedGeneration", 0)),
            fetch=StageStatus.from_dict(data.get("fetch")),
            template=StageStatus.from_dict(data.get("template")),
            deploy=StageStatus.from_dict(data.get("deploy")),
            inspect=StageStatus.from_dict(data.get("inspect")),
            consecutive_reconcile_failures=int(data.get("consecutiveReconcileFailures", 0)),
            consecutive_reconcile_successes=int(data.get("consecutiveReconcileSuccesses", 0)),
            condition=condition,
            friendly_description=data.get("friendlyDescription", ""),
            useful_error_message=data.get("usefulErrorMessage", ""),
        )


@dataclass
class App:
    """An App resource: read-only spec plus the status the engine owns."""

    name: str
    namespace: str
    uid: str = ""
    generation: int = 0
    resource_version: str = ""
    deletion_timestamp: datetime | None = None
    spec: Mapping[str, Any] = field(default_factory=dict)
    status: AppStatus = field(default_factory=AppStatus)

    @classmethod
    def from_body(cls, body: Mapping[str, Any]) -> App:
        """Build an App from a raw Kubernetes object body."""
        meta = body.get("metadata", {})
        return cls(
            name=meta.get("name", ""),
            namespace=meta.get("namespace", "default"),
            uid=meta.get("uid", ""),
            generation=int(meta.get("generation", 0)),
            resource_version=meta.get("resourceVersion", ""),
            deletion_timestamp=parse_time(meta.get("deletionTimestamp")),
            spec=dict(body.get("spec") or {}),
            status=AppStatus.from_dict(body.get("status")),
        )

    @property
    def meta(self) -> dict[str, Any]:
        """Metadata in the shape kopf and the structured logger expect."""
        return {"name": self.name, "namespace": self.namespace, "uid": self.uid, "generation": self.generation}

    @property
    def canceled(self) -> bool:
        return bool(self.spec.get("canceled", False))

    @property
    def paused(self) -> bool:
        return bool(self.spec.get("paused", False))

    @property
    def cache_id(self) -> str:
        """Stable identity for cached fetch artifacts."""
        return self.uid or f"{self.namespace}-{self.name}"
