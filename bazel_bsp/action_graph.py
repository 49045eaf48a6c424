"""
action_graph.py - Modelo do grafo de ações do `bazel aquery --output=jsonproto`

Propósito:
    Desserializa a saída JSON da aquery (schema analysis_v2 do Bazel) em
    tabelas indexadas por id, e implementa as duas travessias básicas:
    achatamento de depsets e reconstrução de paths a partir de fragments.

Componentes principais:
    - Artifact, DepSetOfFiles, PathFragment, Action, Target, RuleClass
    - ActionGraph: Documento completo com lookups O(1) por id
    - parse_action_graph: bytes → ActionGraph
    - flatten_depsets: ids de depsets → ids de artifacts
    - build_file_path: id de fragment folha → path relativo

Notas de implementação:
    - A aquery emite arrays planos; toda referência cruzada passa pelas tabelas
    - Id ausente em qualquer tabela → ResolutionError (grafo inconsistente)
    - Saída que não é JSON → SubprocessError (saída do Bazel inutilizável)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Iterable, Optional

from bazel_bsp.errors import ResolutionError, SubprocessError


@dataclass(frozen=True)
class Artifact:
    id: int
    path_fragment_id: int
    is_tree_artifact: bool = False


@dataclass(frozen=True)
class DepSetOfFiles:
    id: int
    direct_artifact_ids: tuple[int, ...] = ()
    transitive_dep_set_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class PathFragment:
    id: int
    label: str
    parent_id: Optional[int] = None


@dataclass(frozen=True)
class Action:
    target_id: int
    arguments: tuple[str, ...] = ()
    input_dep_set_ids: tuple[int, ...] = ()
    mnemonic: str = ""
    action_key: str = ""


@dataclass(frozen=True)
class Target:
    id: int
    label: str
    rule_class_id: Optional[int] = None


@dataclass(frozen=True)
class RuleClass:
    id: int
    name: str


@dataclass
class ActionGraph:
    """Documento da aquery com tabelas indexadas por id."""

    actions: list[Action] = field(default_factory=list)
    artifacts: dict[int, Artifact] = field(default_factory=dict)
    dep_sets: dict[int, DepSetOfFiles] = field(default_factory=dict)
    path_fragments: dict[int, PathFragment] = field(default_factory=dict)
    targets: dict[int, Target] = field(default_factory=dict)
    rule_classes: dict[int, RuleClass] = field(default_factory=dict)

    def artifact(self, artifact_id: int) -> Artifact:
        return _lookup(self.artifacts, artifact_id, "artifact")

    def dep_set(self, dep_set_id: int) -> DepSetOfFiles:
        return _lookup(self.dep_sets, dep_set_id, "depSetOfFiles")

    def path_fragment(self, fragment_id: int) -> PathFragment:
        return _lookup(self.path_fragments, fragment_id, "pathFragment")

    def target(self, target_id: int) -> Target:
        return _lookup(self.targets, target_id, "target")

    def rule_class_name(self, target: Target) -> Optional[str]:
        rule_class = self.rule_classes.get(target.rule_class_id)
        return rule_class.name if rule_class else None


def _lookup(table: dict, key: int, kind: str):
    try:
        return table[key]
    except KeyError:
        raise ResolutionError(f"{kind} com id {key} não existe no grafo de ações") from None


def parse_action_graph(raw: bytes) -> ActionGraph:
    """
    Desserializa a saída de `bazel aquery --output=jsonproto`.

    Args:
        raw: stdout da aquery

    Returns:
        ActionGraph com tabelas indexadas

    Raises:
        SubprocessError: saída vazia ou que não é JSON
        ResolutionError: JSON fora do schema esperado (inclusive entradas
                         que não são objetos)
    """
    if not raw or not raw.strip():
        raise SubprocessError("Saída da aquery está vazia")
    try:
        document = json.loads(raw)
    except ValueError as e:
        raise SubprocessError(f"Saída da aquery não é JSON válido: {e}") from e
    if not isinstance(document, dict):
        raise ResolutionError("Saída da aquery deve ser um objeto JSON")

    try:
        return _build_graph(document)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ResolutionError(f"Grafo de ações fora do schema esperado: {e!r}") from e


def _build_graph(document: dict) -> ActionGraph:
    graph = ActionGraph()

    for item in _items(document, "artifacts"):
        artifact = Artifact(
            id=int(item["id"]),
            path_fragment_id=int(item["pathFragmentId"]),
            is_tree_artifact=bool(item.get("isTreeArtifact", False)),
        )
        graph.artifacts[artifact.id] = artifact

    for item in _items(document, "depSetOfFiles"):
        dep_set = DepSetOfFiles(
            id=int(item["id"]),
            direct_artifact_ids=_ids(item.get("directArtifactIds")),
            transitive_dep_set_ids=_ids(item.get("transitiveDepSetIds")),
        )
        graph.dep_sets[dep_set.id] = dep_set

    for item in _items(document, "pathFragments"):
        parent_id = item.get("parentId")
        fragment = PathFragment(
            id=int(item["id"]),
            label=str(item["label"]),
            parent_id=int(parent_id) if parent_id is not None else None,
        )
        graph.path_fragments[fragment.id] = fragment

    for item in _items(document, "targets"):
        rule_class_id = item.get("ruleClassId")
        target = Target(
            id=int(item["id"]),
            label=str(item["label"]),
            rule_class_id=int(rule_class_id) if rule_class_id is not None else None,
        )
        graph.targets[target.id] = target

    for item in _items(document, "ruleClasses"):
        rule_class = RuleClass(id=int(item["id"]), name=str(item["name"]))
        graph.rule_classes[rule_class.id] = rule_class

    for item in _items(document, "actions"):
        graph.actions.append(
            Action(
                target_id=int(item["targetId"]),
                arguments=tuple(str(arg) for arg in item.get("arguments", [])),
                input_dep_set_ids=_ids(item.get("inputDepSetIds")),
                mnemonic=str(item.get("mnemonic", "")),
                action_key=str(item.get("actionKey", "")),
            )
        )

    return graph


def _items(document: dict, key: str) -> list[dict]:
    """Entradas de uma tabela da aquery; cada entrada precisa ser um objeto."""
    items = document.get(key) or []
    if not isinstance(items, list):
        raise ResolutionError(f"{key} deve ser uma lista, recebido {type(items).__name__}")
    for item in items:
        if not isinstance(item, dict):
            raise ResolutionError(f"Entrada inválida em {key}: {item!r}")
    return items


def _ids(values: Optional[Iterable]) -> tuple[int, ...]:
    if values is None:
        return ()
    return tuple(int(v) for v in values)


def flatten_depsets(
    graph: ActionGraph, dep_set_ids: Iterable[int], recursive: bool = True
) -> list[int]:
    """
    Resolve depsets para a lista plana de ids de artifacts.

    Args:
        graph: Grafo de ações
        dep_set_ids: Depsets de entrada de uma ação
        recursive: True segue o fecho transitivo completo; False segue
                   apenas um nível de transitiveDepSetIds

    Returns:
        Ids de artifacts sem duplicatas, na ordem em que aparecem
    """
    artifact_ids: dict[int, None] = {}
    visited: set[int] = set()
    # Pilha explícita: depsets reais passam facilmente do limite de recursão
    stack: list[tuple[int, int]] = [(dep_set_id, 0) for dep_set_id in reversed(list(dep_set_ids))]

    while stack:
        dep_set_id, depth = stack.pop()
        # No modo raso a profundidade já é limitada; visited só no fecho completo
        if recursive:
            if dep_set_id in visited:
                continue
            visited.add(dep_set_id)
        dep_set = graph.dep_set(dep_set_id)
        for artifact_id in dep_set.direct_artifact_ids:
            artifact_ids.setdefault(artifact_id, None)
        if not recursive and depth >= 1:
            continue
        for child_id in reversed(dep_set.transitive_dep_set_ids):
            stack.append((child_id, depth + 1))

    return list(artifact_ids)


def build_file_path(graph: ActionGraph, leaf_id: int) -> str:
    """
    Reconstrói o path relativo subindo da folha até a raiz (parent_id None).

    Ex.: {1: Button.swift→2, 2: Components→3, 3: Sources} → Sources/Components/Button.swift
    """
    labels: list[str] = []
    seen: set[int] = set()
    fragment: Optional[PathFragment] = graph.path_fragment(leaf_id)
    while fragment is not None:
        if fragment.id in seen:
            raise ResolutionError(f"Ciclo em pathFragments a partir de {leaf_id}")
        seen.add(fragment.id)
        labels.append(fragment.label)
        if fragment.parent_id is None:
            fragment = None
        else:
            fragment = graph.path_fragment(fragment.parent_id)
    return "/".join(reversed(labels))
