"""
test_converters.py - Testes para os payloads BSP

Propósito:
    Validar o formato camelCase dos resultados enviados ao sourcekit-lsp.
"""

from __future__ import annotations

from pathlib import Path

from bazel_bsp.config import BuildServerConfig
from bazel_bsp.converters import (
    build_initialize_result,
    build_options_changed,
    build_sourcekit_options,
    build_sources_item,
    build_target,
)
from bazel_bsp.resolver import ResolvedTarget

TARGET = ResolvedTarget(
    id=2,
    uri="file:///ws/Sources/Components:Components/2",
    label="//Sources/Components:Components",
    input_files=("file:///ws/Sources/Components/Button.swift",),
    compiler_arguments=("-module-name", "Components"),
)


def test_initialize_result():
    config = BuildServerConfig(
        target="//Sources/App",
        sdk="/SDK",
        index_store_path="/tmp/store",
        index_database_path="/tmp/db",
    )
    result = build_initialize_result(config, "1.2.3")

    assert result["displayName"] == "bazel-bsp"
    assert result["version"] == "1.2.3"
    assert result["bspVersion"] == "2.2.0"
    assert result["capabilities"]["compileProvider"] == {"languageIds": ["swift"]}
    assert result["capabilities"]["canReload"] is False
    assert result["dataKind"] == "sourceKit"
    assert result["data"] == {
        "indexDatabasePath": "/tmp/db",
        "indexStorePath": "/tmp/store",
        "outputPathsProvider": False,
        "prepareProvider": True,
        "sourceKitOptionsProvider": True,
        "defaultSettings": [],
    }


def test_initialize_result_default_settings():
    config = BuildServerConfig(
        target="//Sources/App",
        sdk="/SDK",
        index_store_path="/tmp/store",
        index_database_path="/tmp/db",
        default_settings=["-sdk", "/SDK"],
    )
    assert build_initialize_result(config, "1.2.3")["data"]["defaultSettings"] == ["-sdk", "/SDK"]


def test_build_target():
    payload = build_target(TARGET)
    assert payload["id"] == {"uri": TARGET.uri}
    assert payload["displayName"] == "//Sources/Components:Components"
    assert payload["languageIds"] == ["swift"]
    assert payload["dependencies"] == []
    assert payload["capabilities"]["canCompile"] is True


def test_sources_item():
    item = build_sources_item(TARGET, "file:///ws")
    assert item == {
        "target": {"uri": TARGET.uri},
        "sources": [
            {"uri": "file:///ws/Sources/Components/Button.swift", "kind": 1, "generated": False}
        ],
        "roots": ["file:///ws"],
    }


def test_sources_item_without_root():
    assert "roots" not in build_sources_item(TARGET)


def test_sourcekit_options():
    assert build_sourcekit_options(TARGET.compiler_arguments, Path("/ws")) == {
        "compilerArguments": ["-module-name", "Components"],
        "workingDirectory": "/ws",
    }


def test_options_changed():
    params = build_options_changed("file:///ws/A.swift", [], Path("/ws"))
    assert params == {
        "uri": "file:///ws/A.swift",
        "updatedOptions": {"options": [], "workingDirectory": "/ws"},
    }
