"""Builder selecting an App's fetch, template and deploy backends from its spec."""

from __future__ import annotations

from typing import Any

from kubernetes import client

from ..config import OperatorConfig
from ..models import App
from ..services.deploy.base import Deployer
from ..services.deploy.kapp import KappDeployer
from ..services.exec.runner import CmdRunner
from ..services.fetch.base import FetchBackend
from ..services.fetch.vendir import VendirFetcher
from ..services.template.base import TemplateBackend
from ..services.template.helm import HelmTemplate
from ..services.template.values import AdditionalValues, Values
from ..services.template.ytt import YttTemplate
from ..utils.errors import BackendConfigError

TEMPLATE_KINDS = ("helmTemplate", "ytt")
DEPLOY_KINDS = ("kapp",)


def _single_kind(entry: dict[str, Any], kinds: tuple[str, ...], section: str, idx: int) -> str:
    found = [key for key in entry if key in kinds]
    if len(found) != 1:
        raise BackendConfigError(
            f"Expected exactly one of {', '.join(kinds)} in {section}[{idx}], got {sorted(entry)}"
        )
    return found[0]


class AppBackends:
    """Backends for one App, selected once from the shape of its spec.

    Cluster clients are optional so the builder can be used without a
    cluster; backends that need one fail with BackendConfigError.
    """

    def __init__(
        self,
        app: App,
        cmd_runner: CmdRunner,
        config: OperatorConfig,
        core_v1: client.CoreV1Api | None = None,
        additional_values: AdditionalValues | None = None,
    ):
        self.app = app
        self.cmd_runner = cmd_runner
        self.config = config
        self.core_v1 = core_v1
        self.additional_values = additional_values or AdditionalValues()
        self._deployer: Deployer | None = None

    def fetcher(self) -> FetchBackend:
        return VendirFetcher(
            self.app.spec.get("fetch") or [],
            self.cmd_runner,
            cache_dir=self.config.vendir_cache_dir,
            cache_id=self.app.cache_id,
        )

    def templates(self) -> list[TemplateBackend]:
        entries = self.app.spec.get("template") or []
        if not entries:
            raise BackendConfigError("Expected at least one template option")

        templates: list[TemplateBackend] = []
        for idx, entry in enumerate(entries):
            kind = _single_kind(entry, TEMPLATE_KINDS, "template", idx)
            opts = entry[kind] or {}
            values = Values(opts.get("valuesFrom") or [], self.app.namespace, self.core_v1)
            if kind == "helmTemplate":
                templates.append(HelmTemplate(
                    opts, self.app.name, self.app.namespace, self.cmd_runner, values, self.additional_values,
                ))
            else:
                templates.append(YttTemplate(opts, self.cmd_runner, values))
        return templates

    def deployer(self) -> Deployer:
        # Deploy, metadata and inspect must see the same instance
        if self._deployer is not None:
            return self._deployer

        entries = self.app.spec.get("deploy") or []
        if len(entries) != 1:
            raise BackendConfigError(f"Expected exactly one deploy option, got {len(entries)}")
        kind = _single_kind(entries[0], DEPLOY_KINDS, "deploy", 0)

        self._deployer = KappDeployer(
            entries[0][kind] or {}, self.app.name, self.app.namespace, self.cmd_runner, self.core_v1,
        )
        return self._deployer
