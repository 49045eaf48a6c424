"""
session.py - Estado da sessão BSP

Propósito:
    Guarda a configuração, a raiz do workspace e os targets da última
    resolução, para servir buildTarget/sources, textDocument/sourceKitOptions
    e o modelo push legado sem refazer a aquery.

Componentes principais:
    - Session: Estado mutável pertencente ao servidor

Notas de implementação:
    - Criada uma única vez no build/initialize
    - targets é substituído (nunca mesclado) a cada workspace/buildTargets
    - A substituição acontece entre mensagens: leitores nunca veem estado parcial
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from pygls.uris import from_fs_path

from bazel_bsp.config import BuildServerConfig
from bazel_bsp.errors import TargetNotFoundError
from bazel_bsp.resolver import ResolvedTarget

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Estado da sessão após build/initialize."""

    config: BuildServerConfig
    root_path: Path
    execution_root: str
    targets: tuple[ResolvedTarget, ...] = ()
    has_resolved: bool = False

    @property
    def root_uri(self) -> str:
        return from_fs_path(str(self.root_path))

    def replace_targets(self, targets: Iterable[ResolvedTarget]) -> None:
        """Substitui os targets da resolução anterior."""
        # dict.fromkeys deduplica por (uri, id) mantendo a ordem
        self.targets = tuple(dict.fromkeys(targets))
        self.has_resolved = True
        logger.info(f"Sessão atualizada com {len(self.targets)} targets")

    def find_target(self, uri: str) -> ResolvedTarget:
        """Retorna o target com a URI dada ou levanta TargetNotFoundError."""
        for target in self.targets:
            if target.uri == uri:
                return target
        raise TargetNotFoundError(uri)

    def find_target_for_file(self, file_uri: str) -> Optional[ResolvedTarget]:
        """Primeiro target cujo input_files contém exatamente a URI do arquivo."""
        for target in self.targets:
            if file_uri in target.input_files:
                return target
        return None
