"""
methods.py - Métodos BSP suportados e estados do ciclo de vida

Propósito:
    Enumeração fechada dos métodos roteados pelo servidor, com um membro
    UNKNOWN explícito para métodos não reconhecidos (tratados como fatais).

Componentes principais:
    - RequestMethod: Nome do método → membro da enumeração
    - LifecycleState: Estados Uninitialized → Initialized → ShuttingDown → Exited
"""

from __future__ import annotations

from enum import Enum

from lsprotocol.types import WORKSPACE_DID_CHANGE_WATCHED_FILES


class RequestMethod(str, Enum):
    BUILD_INITIALIZE = "build/initialize"
    BUILD_INITIALIZED = "build/initialized"
    BUILD_SHUTDOWN = "build/shutdown"
    BUILD_EXIT = "build/exit"
    WORKSPACE_BUILD_TARGETS = "workspace/buildTargets"
    WORKSPACE_WAIT_FOR_BUILD_SYSTEM_UPDATES = "workspace/waitForBuildSystemUpdates"
    WORKSPACE_DID_CHANGE_WATCHED_FILES = WORKSPACE_DID_CHANGE_WATCHED_FILES
    BUILD_TARGET_SOURCES = "buildTarget/sources"
    BUILD_TARGET_PREPARE = "buildTarget/prepare"
    TEXT_DOCUMENT_SOURCEKIT_OPTIONS = "textDocument/sourceKitOptions"
    TEXT_DOCUMENT_REGISTER_FOR_CHANGES = "textDocument/registerForChanges"
    UNKNOWN = ""

    @classmethod
    def parse(cls, name: object) -> "RequestMethod":
        """Retorna o membro correspondente ou UNKNOWN."""
        if not isinstance(name, str) or not name:
            return cls.UNKNOWN
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


class LifecycleState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


# Notificação enviada pelo servidor no modelo push legado
SOURCEKIT_OPTIONS_CHANGED = "build/sourceKitOptionsChanged"
