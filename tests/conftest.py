"""
conftest.py - Fixtures compartilhadas

Propósito:
    Grafo de aquery com dois targets Swift (Utils e Components) e um
    workspace temporário com buildServer.json.
"""

from __future__ import annotations

import json

import pytest

from bazel_bsp.config import CONFIG_FILENAME

EXECROOT = "/execroot/__main__"

UTILS_ARGS = [
    "bazel-out/darwin_arm64-opt-exec/bin/external/build_bazel_rules_swift/tools/worker/worker",
    "swiftc",
    "-Xwrapped-swift=-debug-prefix-pwd-is-dot",
    "-module-name",
    "Utils",
    "-sdk",
    "__BAZEL_XCODE_SDKROOT__",
    "-enable-batch-mode",
    "Sources/Utils/StringUtils.swift",
]

COMPONENTS_ARGS = [
    "bazel-out/darwin_arm64-opt-exec/bin/external/build_bazel_rules_swift/tools/worker/worker",
    "swiftc",
    "-module-name",
    "Components",
    "-sdk",
    "__BAZEL_XCODE_SDKROOT__",
    "-Ibazel-out/darwin-fastbuild/bin/Sources/Utils",
    "-Xfrontend",
    "-const-gather-protocols-file",
    "-index-store-path",
    "bazel-out/_global_index_store/indexstore",
    "Sources/Components/Button.swift",
]


def make_aquery() -> dict:
    """Grafo com uma ação SwiftCompile por target e um arquivo .swift cada."""
    return {
        "artifacts": [
            {"id": 10, "pathFragmentId": 4},
            {"id": 11, "pathFragmentId": 5},
            {"id": 12, "pathFragmentId": 6},
        ],
        "depSetOfFiles": [
            {"id": 100, "directArtifactIds": [10]},
            {"id": 101, "directArtifactIds": [11, 12]},
        ],
        "pathFragments": [
            {"id": 1, "label": "Sources"},
            {"id": 2, "label": "Utils", "parentId": 1},
            {"id": 3, "label": "Components", "parentId": 1},
            {"id": 4, "label": "StringUtils.swift", "parentId": 2},
            {"id": 5, "label": "Button.swift", "parentId": 3},
            {"id": 6, "label": "Info.plist", "parentId": 3},
        ],
        "targets": [
            {"id": 1, "label": "//Sources/Utils:Utils", "ruleClassId": 1},
            {"id": 2, "label": "//Sources/Components:Components", "ruleClassId": 1},
        ],
        "ruleClasses": [{"id": 1, "name": "swift_library"}],
        "actions": [
            {
                "targetId": 1,
                "mnemonic": "SwiftCompile",
                "arguments": UTILS_ARGS,
                "inputDepSetIds": [100],
            },
            {
                "targetId": 2,
                "mnemonic": "SwiftCompile",
                "arguments": COMPONENTS_ARGS,
                "inputDepSetIds": [101],
            },
        ],
    }


@pytest.fixture
def aquery_document() -> dict:
    return make_aquery()


@pytest.fixture
def aquery_bytes(aquery_document) -> bytes:
    return json.dumps(aquery_document).encode("utf-8")


@pytest.fixture
def workspace(tmp_path):
    """Raiz de workspace com buildServer.json e executionRoot fixo."""
    config = {
        "name": "bazel-bsp",
        "argv": ["bazel-bsp"],
        "version": "0.1.0",
        "bspVersion": "2.2.0",
        "languages": ["swift"],
        "target": "//Sources/Components",
        "sdk": "/SDK",
        "indexStorePath": str(tmp_path / "index-store"),
        "indexDatabasePath": str(tmp_path / "index-db"),
        "executionRoot": EXECROOT,
    }
    (tmp_path / CONFIG_FILENAME).write_text(json.dumps(config), encoding="utf-8")
    return tmp_path
