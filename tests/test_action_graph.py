"""
test_action_graph.py - Testes para o modelo do grafo da aquery

Propósito:
    Validar desserialização, achatamento de depsets (recursivo e raso)
    e reconstrução de paths a partir de pathFragments.
"""

from __future__ import annotations

import json

import pytest

from bazel_bsp.action_graph import (
    ActionGraph,
    DepSetOfFiles,
    PathFragment,
    build_file_path,
    flatten_depsets,
    parse_action_graph,
)
from bazel_bsp.errors import ResolutionError, SubprocessError


def graph_with_depsets(*dep_sets: DepSetOfFiles) -> ActionGraph:
    graph = ActionGraph()
    for dep_set in dep_sets:
        graph.dep_sets[dep_set.id] = dep_set
    return graph


def graph_with_fragments(*fragments: PathFragment) -> ActionGraph:
    graph = ActionGraph()
    for fragment in fragments:
        graph.path_fragments[fragment.id] = fragment
    return graph


# --- parse_action_graph ---

class TestParseActionGraph:
    def test_parses_all_tables(self):
        raw = json.dumps(
            {
                "artifacts": [{"id": 1, "pathFragmentId": 10}],
                "depSetOfFiles": [{"id": 5, "directArtifactIds": [1]}],
                "pathFragments": [{"id": 10, "label": "A.swift"}],
                "targets": [{"id": 3, "label": "//Sources/A:A", "ruleClassId": 1}],
                "ruleClasses": [{"id": 1, "name": "swift_library"}],
                "actions": [
                    {
                        "targetId": 3,
                        "arguments": ["swiftc", "A.swift"],
                        "inputDepSetIds": [5],
                        "mnemonic": "SwiftCompile",
                    }
                ],
            }
        ).encode()

        graph = parse_action_graph(raw)

        assert graph.artifact(1).path_fragment_id == 10
        assert graph.dep_set(5).direct_artifact_ids == (1,)
        assert graph.dep_set(5).transitive_dep_set_ids == ()
        assert graph.path_fragment(10).parent_id is None
        assert graph.target(3).label == "//Sources/A:A"
        assert graph.rule_class_name(graph.target(3)) == "swift_library"
        assert len(graph.actions) == 1
        assert graph.actions[0].arguments == ("swiftc", "A.swift")
        assert graph.actions[0].input_dep_set_ids == (5,)

    def test_missing_tables_are_empty(self):
        """Tabelas opcionais ausentes viram tabelas vazias."""
        graph = parse_action_graph(b"{}")
        assert graph.actions == []
        assert graph.artifacts == {}

    @pytest.mark.parametrize("raw", [b"", b"   \n", b"not json"])
    def test_unusable_output(self, raw):
        """Saída vazia ou não-JSON → SubprocessError."""
        with pytest.raises(SubprocessError):
            parse_action_graph(raw)

    def test_missing_required_key(self):
        """Chave obrigatória ausente → ResolutionError."""
        with pytest.raises(ResolutionError):
            parse_action_graph(b'{"artifacts": [{"id": 1}]}')

    @pytest.mark.parametrize(
        "raw",
        [
            b'{"pathFragments": [5]}',
            b'{"targets": ["x"]}',
            b'{"artifacts": [null]}',
            b'{"actions": "SwiftCompile"}',
            b'{"depSetOfFiles": {"id": 1}}',
        ],
    )
    def test_malformed_items(self, raw):
        """Entrada que não é objeto (ou tabela que não é lista) → ResolutionError."""
        with pytest.raises(ResolutionError):
            parse_action_graph(raw)

    def test_non_object_document(self):
        with pytest.raises(ResolutionError):
            parse_action_graph(b"[1, 2]")

    def test_lookup_missing_id(self):
        graph = parse_action_graph(b"{}")
        with pytest.raises(ResolutionError, match="target com id 7"):
            graph.target(7)


# --- flatten_depsets ---

class TestFlattenDepsets:
    def test_one_level(self):
        """{1: (11, [2, 3]), 2: 12, 3: 13} → [11, 12, 13]."""
        graph = graph_with_depsets(
            DepSetOfFiles(1, (11,), (2, 3)),
            DepSetOfFiles(2, (12,)),
            DepSetOfFiles(3, (13,)),
        )
        assert flatten_depsets(graph, [1]) == [11, 12, 13]

    def test_duplicates_collapse(self):
        graph = graph_with_depsets(
            DepSetOfFiles(1, (11, 12), (2,)),
            DepSetOfFiles(2, (12, 11)),
        )
        assert flatten_depsets(graph, [1, 2]) == [11, 12]

    def test_recursive_closure(self):
        """Modo padrão segue toda a cadeia de transitiveDepSetIds."""
        graph = graph_with_depsets(
            DepSetOfFiles(1, (11,), (2,)),
            DepSetOfFiles(2, (12,), (3,)),
            DepSetOfFiles(3, (13,)),
        )
        assert flatten_depsets(graph, [1]) == [11, 12, 13]

    def test_shallow_cutoff(self):
        """recursive=False para no primeiro nível transitivo."""
        graph = graph_with_depsets(
            DepSetOfFiles(1, (11,), (2,)),
            DepSetOfFiles(2, (12,), (3,)),
            DepSetOfFiles(3, (13,)),
        )
        assert flatten_depsets(graph, [1], recursive=False) == [11, 12]

    def test_shared_depset_visited_once(self):
        """Depset compartilhado (diamante) é expandido uma vez."""
        graph = graph_with_depsets(
            DepSetOfFiles(1, (), (2, 3)),
            DepSetOfFiles(2, (12,), (4,)),
            DepSetOfFiles(3, (13,), (4,)),
            DepSetOfFiles(4, (14,)),
        )
        assert flatten_depsets(graph, [1]) == [12, 14, 13]

    def test_deep_chain_does_not_recurse(self):
        """Cadeias longas não estouram o limite de recursão."""
        depth = 5000
        dep_sets = [DepSetOfFiles(i, (i,), (i + 1,)) for i in range(depth)]
        dep_sets.append(DepSetOfFiles(depth, (depth,)))
        graph = graph_with_depsets(*dep_sets)

        assert flatten_depsets(graph, [0]) == list(range(depth + 1))

    def test_missing_depset(self):
        graph = graph_with_depsets(DepSetOfFiles(1, (), (99,)))
        with pytest.raises(ResolutionError):
            flatten_depsets(graph, [1])


# --- build_file_path ---

class TestBuildFilePath:
    def test_walks_to_root(self):
        graph = graph_with_fragments(
            PathFragment(1, "Button.swift", 2),
            PathFragment(2, "Components", 3),
            PathFragment(3, "Sources"),
        )
        assert build_file_path(graph, 1) == "Sources/Components/Button.swift"

    def test_single_fragment(self):
        graph = graph_with_fragments(PathFragment(1, "Main.swift"))
        assert build_file_path(graph, 1) == "Main.swift"

    def test_missing_parent(self):
        graph = graph_with_fragments(PathFragment(1, "A.swift", 42))
        with pytest.raises(ResolutionError):
            build_file_path(graph, 1)

    def test_cycle(self):
        graph = graph_with_fragments(
            PathFragment(1, "a", 2),
            PathFragment(2, "b", 1),
        )
        with pytest.raises(ResolutionError, match="Ciclo"):
            build_file_path(graph, 1)
