"""
arguments.py - Reescrita dos argumentos do compilador Swift

Propósito:
    Transforma a linha de comando que o Bazel usa dentro do sandbox em uma
    invocação de swiftc válida a partir da raiz do workspace, para o
    sourcekit-lsp.

Componentes principais:
    - rewrite_arguments: Lista bruta de argumentos → lista reescrita
    - RewriteContext: SDK e execution root usados pelas regras

Notas de implementação:
    - Passada única, da esquerda para a direita; cada regra consome 1 ou 2 tokens
    - A primeira regra que casa "reivindica" o token; a ordem de _RULES importa
    - Tokens que nenhuma regra reivindica passam inalterados, na ordem original
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

SDKROOT_PLACEHOLDER = "__BAZEL_XCODE_SDKROOT__"
BAZEL_OUT = "bazel-out/"
EXTERNAL = "external/"

WRAPPED_SWIFT_MARKER = "-Xwrapped-swift"
XFRONTEND = "-Xfrontend"
CONST_GATHER_MARKERS = ("-const-gather-protocols-file", "const_protocols_to_gather.json")
INDEX_STORE_PATH = "-index-store-path"
BATCH_MODE = "-enable-batch-mode"


@dataclass(frozen=True)
class RewriteContext:
    sdk: str
    execution_root: str


# (tokens consumidos, tokens emitidos) ou None se a regra não casa
RuleResult = Optional[tuple[int, list[str]]]
Rule = Callable[[Sequence[str], int, RewriteContext], RuleResult]


def _drop_wrapper(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    arg = args[i]
    if WRAPPED_SWIFT_MARKER in arg or arg.endswith("worker") or arg.startswith("swiftc"):
        return 1, []
    return None


def _drop_batch_mode(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    if BATCH_MODE in args[i]:
        return 1, []
    return None


def _drop_index_store(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    if INDEX_STORE_PATH in args[i] and i + 1 < len(args) and "indexstore" in args[i + 1]:
        return 2, []
    return None


def _drop_const_gather(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    if XFRONTEND in args[i] and i + 1 < len(args):
        following = args[i + 1]
        if any(marker in following for marker in CONST_GATHER_MARKERS):
            return 2, []
    return None


def _replace_sdkroot(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    arg = args[i]
    if SDKROOT_PLACEHOLDER in arg:
        return 1, [arg.replace(SDKROOT_PLACEHOLDER, ctx.sdk)]
    return None


def _prefix_bazel_out(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    arg = args[i]
    if BAZEL_OUT in arg:
        return 1, [arg.replace(BAZEL_OUT, _execroot_prefix(ctx, BAZEL_OUT))]
    return None


def _prefix_external(args: Sequence[str], i: int, ctx: RewriteContext) -> RuleResult:
    arg = args[i]
    if EXTERNAL in arg:
        return 1, [arg.replace(EXTERNAL, _execroot_prefix(ctx, EXTERNAL))]
    return None


def _execroot_prefix(ctx: RewriteContext, segment: str) -> str:
    return f"{ctx.execution_root.rstrip('/')}/{segment}"


# SDKROOT antes do wrapper: `__BAZEL_XCODE_SDKROOT__/.../worker` é reescrito, não removido
_RULES: tuple[Rule, ...] = (
    _drop_batch_mode,
    _drop_index_store,
    _drop_const_gather,
    _replace_sdkroot,
    _drop_wrapper,
    _prefix_bazel_out,
    _prefix_external,
)


def rewrite_arguments(arguments: Sequence[str], sdk: str, execution_root: str) -> list[str]:
    """
    Reescreve os argumentos de uma ação SwiftCompile.

    Args:
        arguments: Argumentos brutos da ação (aquery)
        sdk: Path concreto do SDK que substitui __BAZEL_XCODE_SDKROOT__
        execution_root: Execution root do Bazel, prefixado em bazel-out/ e external/

    Returns:
        Nova lista de argumentos; a entrada não é modificada
    """
    ctx = RewriteContext(sdk=sdk, execution_root=execution_root)
    rewritten: list[str] = []
    index = 0
    count = len(arguments)
    while index < count:
        for rule in _RULES:
            result = rule(arguments, index, ctx)
            if result is not None:
                consumed, emitted = result
                break
        else:
            consumed, emitted = 1, [arguments[index]]
        rewritten.extend(emitted)
        index += consumed
    return rewritten


def extra_search_paths(includes: Sequence[str], frameworks: Sequence[str]) -> list[str]:
    """Argumentos -I/-F adicionais configurados no buildServer.json."""
    return [f"-I{path}" for path in includes] + [f"-F{path}" for path in frameworks]
