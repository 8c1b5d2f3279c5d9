"""Tests for templating values resolution."""

from __future__ import annotations

import base64
import json
import os
from unittest.mock import MagicMock

import pytest

from appsync_operator.services.template.values import AdditionalValues, Values
from appsync_operator.utils.errors import BackendConfigError, ScopedPathError


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


class TestValues:
    """Test cases for Values.as_paths."""

    def test_secret_ref(self, tmp_path):
        """Test that secret data is decoded into files."""
        core_v1 = MagicMock()
        core_v1.read_namespaced_secret.return_value = MagicMock(
            data={"values.yml": base64.b64encode(b"password: hunter2").decode()}
        )

        paths, cleanup = Values([{"secretRef": {"name": "creds"}}], "apps", core_v1).as_paths(str(tmp_path))
        try:
            assert len(paths) == 1
            assert _read(paths[0]) == "password: hunter2"
            core_v1.read_namespaced_secret.assert_called_once_with(name="creds", namespace="apps")
        finally:
            cleanup()
        assert not os.path.exists(paths[0])

    def test_config_map_ref(self, tmp_path):
        """Test that config map data is written to files in key order."""
        core_v1 = MagicMock()
        core_v1.read_namespaced_config_map.return_value = MagicMock(data={"b.yml": "b: 2", "a.yml": "a: 1"})

        paths, cleanup = Values([{"configMapRef": {"name": "cfg"}}], "apps", core_v1).as_paths(str(tmp_path))
        try:
            assert [os.path.basename(p) for p in paths] == ["a.yml", "b.yml"]
        finally:
            cleanup()

    def test_inline(self, tmp_path):
        """Test that inline values are written as a document."""
        paths, cleanup = Values([{"inline": {"replicas": 3}}], "apps").as_paths(str(tmp_path))
        try:
            assert json.loads(_read(paths[0])) == {"replicas": 3}
        finally:
            cleanup()

    def test_path_and_stdin(self, tmp_path):
        """Test that path sources are scoped and '-' stands for stdin."""
        paths, cleanup = Values([{"path": "values/prod.yml"}, {"path": "-"}], "apps").as_paths(str(tmp_path))
        cleanup()

        assert paths == [str(tmp_path / "values" / "prod.yml"), "-"]

    def test_escaping_path(self, tmp_path):
        """Test that path sources may not leave the assets directory."""
        with pytest.raises(ScopedPathError):
            Values([{"path": "../secret"}], "apps").as_paths(str(tmp_path))

    def test_cluster_reference_without_client(self, tmp_path):
        """Test that cluster references need a client."""
        with pytest.raises(BackendConfigError):
            Values([{"secretRef": {"name": "x"}}], "apps").as_paths(str(tmp_path))

    def test_unknown_source(self, tmp_path):
        """Test that unknown value sources are rejected."""
        with pytest.raises(BackendConfigError):
            Values([{"downwardAPI": {}}], "apps").as_paths(str(tmp_path))


class TestAdditionalValues:
    """Test cases for AdditionalValues."""

    def test_version_override(self):
        """Test that an explicit version wins."""
        assert AdditionalValues().kubernetes_version({"version": "v1.28.1"}) == "v1.28.1"

    def test_apis_from_cluster(self):
        """Test that core and group versions are listed from discovery."""
        core_api = MagicMock()
        core_api.get_api_versions.return_value = MagicMock(versions=["v1"])
        group_version = MagicMock(group_version="apps/v1")
        apis_api = MagicMock()
        apis_api.get_api_versions.return_value = MagicMock(groups=[MagicMock(versions=[group_version])])

        apis = AdditionalValues(apis_api=apis_api, core_api=core_api).kubernetes_apis()

        assert apis == ["v1", "apps/v1"]

    def test_apis_override(self):
        """Test that explicit group versions win."""
        assert AdditionalValues().kubernetes_apis({"groupVersions": ["v1"]}) == ["v1"]
