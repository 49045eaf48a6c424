"""
resolver.py - Resolução do grafo de ações em targets BSP

Propósito:
    Converte a saída da aquery em uma lista deduplicada de ResolvedTarget,
    cada um com seus arquivos .swift de entrada (URIs absolutas) e os
    argumentos de compilação reescritos.

Componentes principais:
    - ResolvedTarget: Target resolvido; igualdade/hash por (uri, id)
    - ActionGraphResolver: bytes da aquery → list[ResolvedTarget]
    - target_uri: label + id do Bazel → URI canônica do target

Dependências críticas:
    - pygls.uris: Conversão path ↔ file URI

Notas de implementação:
    - Função pura das entradas; nenhum estado entre resoluções
    - Várias ações do mesmo target colapsam em um único ResolvedTarget:
      input_files é a união, compiler_arguments vem da última ação
    - Apenas arquivos .swift são mantidos
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from pygls.uris import from_fs_path

from bazel_bsp.action_graph import (
    ActionGraph,
    build_file_path,
    flatten_depsets,
    parse_action_graph,
)
from bazel_bsp.arguments import extra_search_paths, rewrite_arguments
from bazel_bsp.config import BuildServerConfig
from bazel_bsp.errors import ResolutionError

SOURCE_EXTENSION = ".swift"


@dataclass(frozen=True)
class ResolvedTarget:
    """Target exposto ao cliente. Só (uri, id) participam de __eq__/__hash__."""

    id: int
    uri: str
    label: str = field(compare=False)
    input_files: tuple[str, ...] = field(default=(), compare=False)
    compiler_arguments: tuple[str, ...] = field(default=(), compare=False)

    @property
    def display_name(self) -> str:
        return self.label


def target_uri(root_path: Path, label: str, target_id: int) -> str:
    """
    Constrói a URI canônica de um target.

    Ex.: (/ws, //Sources/Components:Components, 3) → file:///ws/Sources/Components:Components/3
    """
    relative = label[2:] if label.startswith("//") else label
    uri = from_fs_path(str(Path(root_path) / relative / str(target_id)))
    if not uri:
        raise ResolutionError(f"Não foi possível criar URI para o target {label}")
    return uri


class ActionGraphResolver:
    """Achata o grafo da aquery em targets com arquivos e argumentos."""

    def __init__(
        self,
        root_path: Path,
        execution_root: str,
        sdk: str,
        extra_includes: Sequence[str] = (),
        extra_frameworks: Sequence[str] = (),
        recursive_depsets: bool = True,
        logger: Optional[logging.Logger] = None,
    ):
        self.root_path = Path(root_path)
        self.execution_root = execution_root
        self.sdk = sdk
        self.extra_includes = list(extra_includes)
        self.extra_frameworks = list(extra_frameworks)
        self.recursive_depsets = recursive_depsets
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls,
        config: BuildServerConfig,
        root_path: Path,
        execution_root: str,
        logger: Optional[logging.Logger] = None,
    ) -> "ActionGraphResolver":
        return cls(
            root_path=root_path,
            execution_root=execution_root,
            sdk=config.sdk,
            extra_includes=config.extra_includes,
            extra_frameworks=config.extra_frameworks,
            recursive_depsets=not config.shallow_depsets,
            logger=logger,
        )

    def resolve(self, raw: bytes) -> list[ResolvedTarget]:
        """
        Resolve a saída bruta da aquery.

        Raises:
            SubprocessError: saída vazia ou que não é JSON
            ResolutionError: id referenciado inexistente
        """
        return self.resolve_graph(parse_action_graph(raw))

    def resolve_graph(self, graph: ActionGraph) -> list[ResolvedTarget]:
        merged: dict[tuple[str, int], ResolvedTarget] = {}

        for action in graph.actions:
            target = graph.target(action.target_id)
            uri = target_uri(self.root_path, target.label, target.id)
            input_files = self._input_files(graph, action.input_dep_set_ids)
            arguments = rewrite_arguments(action.arguments, self.sdk, self.execution_root)
            arguments.extend(extra_search_paths(self.extra_includes, self.extra_frameworks))

            key = (uri, action.target_id)
            previous = merged.get(key)
            if previous is not None:
                input_files = _union(previous.input_files, input_files)

            merged[key] = ResolvedTarget(
                id=action.target_id,
                uri=uri,
                label=target.label,
                input_files=tuple(input_files),
                compiler_arguments=tuple(arguments),
            )
            self.logger.debug(
                f"Ação {action.mnemonic or '?'} → {target.label} "
                f"({graph.rule_class_name(target) or 'regra desconhecida'}), "
                f"{len(input_files)} arquivos"
            )

        targets = list(merged.values())
        self.logger.info(
            f"Resolvidos {len(targets)} targets a partir de {len(graph.actions)} ações"
        )
        return targets

    def _input_files(self, graph: ActionGraph, dep_set_ids: Sequence[int]) -> list[str]:
        files: dict[str, None] = {}
        artifact_ids = flatten_depsets(graph, dep_set_ids, recursive=self.recursive_depsets)
        for artifact_id in artifact_ids:
            artifact = graph.artifact(artifact_id)
            relative = build_file_path(graph, artifact.path_fragment_id)
            if not relative.endswith(SOURCE_EXTENSION):
                continue
            uri = from_fs_path(str(self.root_path / relative))
            if uri:
                files.setdefault(uri, None)
        return list(files)


def _union(first: Sequence[str], second: Sequence[str]) -> list[str]:
    return list(dict.fromkeys([*first, *second]))
