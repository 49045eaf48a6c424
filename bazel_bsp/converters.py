"""
converters.py - Conversão de targets resolvidos para payloads BSP

Propósito:
    Monta os objetos JSON das respostas BSP a partir de ResolvedTarget e da
    configuração, mantendo os nomes camelCase do protocolo em um só lugar.

Componentes principais:
    - build_initialize_result: Config → resultado de build/initialize
    - build_target: ResolvedTarget → BuildTarget
    - build_sources_item: ResolvedTarget → SourcesItem
    - build_sourcekit_options: ResolvedTarget → resultado de sourceKitOptions
    - build_options_changed: Params da notificação build/sourceKitOptionsChanged

Notas de implementação:
    - SourceItemKind do BSP: 1 = arquivo, 2 = diretório
    - Só Swift é anunciado em compileProvider e languageIds
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from bazel_bsp.config import BuildServerConfig
from bazel_bsp.resolver import ResolvedTarget

BSP_VERSION = "2.2.0"
SERVER_NAME = "bazel-bsp"
LANGUAGE_IDS = ["swift"]
SOURCE_ITEM_KIND_FILE = 1


def build_initialize_result(config: BuildServerConfig, version: str) -> dict:
    """Resultado de build/initialize com dados específicos do sourceKit."""
    return {
        "displayName": SERVER_NAME,
        "version": version,
        "bspVersion": BSP_VERSION,
        "capabilities": {
            "compileProvider": {"languageIds": list(LANGUAGE_IDS)},
            "inverseSourcesProvider": False,
            "dependencySourcesProvider": False,
            "resourcesProvider": False,
            "outputPathsProvider": False,
            "buildTargetChangedProvider": False,
            "canReload": False,
        },
        "dataKind": "sourceKit",
        "data": {
            "indexDatabasePath": config.index_database_path,
            "indexStorePath": config.index_store_path,
            "outputPathsProvider": False,
            "prepareProvider": True,
            "sourceKitOptionsProvider": True,
            "defaultSettings": list(config.default_settings),
        },
    }


def build_target(target: ResolvedTarget) -> dict:
    return {
        "id": {"uri": target.uri},
        "displayName": target.display_name,
        "tags": ["library"],
        "languageIds": list(LANGUAGE_IDS),
        "dependencies": [],
        "capabilities": {
            "canCompile": True,
            "canTest": False,
            "canRun": False,
            "canDebug": False,
        },
    }


def build_sources_item(target: ResolvedTarget, root_uri: Optional[str] = None) -> dict:
    item = {
        "target": {"uri": target.uri},
        "sources": [
            {"uri": uri, "kind": SOURCE_ITEM_KIND_FILE, "generated": False}
            for uri in target.input_files
        ],
    }
    if root_uri:
        item["roots"] = [root_uri]
    return item


def build_sourcekit_options(arguments: Sequence[str], working_directory: Path) -> dict:
    return {
        "compilerArguments": list(arguments),
        "workingDirectory": str(working_directory),
    }


def build_options_changed(uri: str, options: Sequence[str], working_directory: Path) -> dict:
    """Params de build/sourceKitOptionsChanged (modelo push legado)."""
    return {
        "uri": uri,
        "updatedOptions": {
            "options": list(options),
            "workingDirectory": str(working_directory),
        },
    }
