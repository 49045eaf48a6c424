"""
config.py - Leitura e validação do buildServer.json

Propósito:
    Carrega a configuração do servidor a partir do arquivo buildServer.json
    na raiz do workspace Bazel, lida uma única vez durante build/initialize.

Componentes principais:
    - BuildServerConfig: Configuração validada
    - load_config: Path da raiz → BuildServerConfig (ou ConfigError)

Notas de implementação:
    - Chaves em camelCase, como no arquivo de conexão BSP
    - Obrigatórias: target, sdk, indexStorePath, indexDatabasePath
    - defaultSettings: opções enviadas quando nenhum target contém o arquivo
    - Qualquer falha aqui é fatal para o initialize
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from bazel_bsp.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "buildServer.json"

_REQUIRED_STRINGS = {
    "target": "target",
    "sdk": "sdk",
    "indexStorePath": "index_store_path",
    "indexDatabasePath": "index_database_path",
}
_OPTIONAL_STRINGS = {
    "name": "name",
    "version": "version",
    "bspVersion": "bsp_version",
    "executionRoot": "execution_root",
    "logPath": "log_path",
}
_STRING_LISTS = {
    "argv": "argv",
    "languages": "languages",
    "aqueryArgs": "aquery_args",
    "extraIncludes": "extra_includes",
    "extraFrameworks": "extra_frameworks",
    "defaultSettings": "default_settings",
}


@dataclass(frozen=True)
class BuildServerConfig:
    """Conteúdo validado do buildServer.json."""

    target: str
    sdk: str
    index_store_path: str
    index_database_path: str
    name: Optional[str] = None
    version: Optional[str] = None
    bsp_version: Optional[str] = None
    execution_root: Optional[str] = None
    log_path: Optional[str] = None
    argv: list[str] = field(default_factory=list)
    languages: list[str] = field(default_factory=list)
    aquery_args: list[str] = field(default_factory=list)
    extra_includes: list[str] = field(default_factory=list)
    extra_frameworks: list[str] = field(default_factory=list)
    default_settings: list[str] = field(default_factory=list)
    shallow_depsets: bool = False

    @classmethod
    def from_dict(cls, data: object) -> "BuildServerConfig":
        """Valida um dict já decodificado do JSON."""
        if not isinstance(data, dict):
            raise ConfigError(f"{CONFIG_FILENAME} deve conter um objeto JSON")

        values: dict = {}
        for key, attr in _REQUIRED_STRINGS.items():
            value = data.get(key)
            if not isinstance(value, str) or not value:
                raise ConfigError(f"Campo obrigatório ausente ou inválido: {key}")
            values[attr] = value

        for key, attr in _OPTIONAL_STRINGS.items():
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ConfigError(f"Campo {key} deve ser string")
            values[attr] = value

        for key, attr in _STRING_LISTS.items():
            value = data.get(key)
            if value is None:
                continue
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigError(f"Campo {key} deve ser lista de strings")
            values[attr] = list(value)

        shallow = data.get("shallowDepsets", False)
        if not isinstance(shallow, bool):
            raise ConfigError("Campo shallowDepsets deve ser booleano")
        values["shallow_depsets"] = shallow

        return cls(**values)


def load_config(root_path: Path) -> BuildServerConfig:
    """
    Lê buildServer.json da raiz do workspace.

    Args:
        root_path: Diretório raiz do workspace Bazel

    Returns:
        BuildServerConfig validado

    Raises:
        ConfigError: arquivo ausente, JSON inválido ou campos inválidos
    """
    config_path = Path(root_path) / CONFIG_FILENAME
    try:
        raw = config_path.read_bytes()
    except OSError as e:
        raise ConfigError(f"{CONFIG_FILENAME} não encontrado em {root_path}: {e}") from e

    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ConfigError(f"{CONFIG_FILENAME} não é JSON válido: {e}") from e

    config = BuildServerConfig.from_dict(data)
    logger.info(f"Configuração carregada: {config_path} (target={config.target})")
    return config
