"""
bazel.py - Invocação do Bazel como subprocesso

Propósito:
    Executa `bazel aquery`, `bazel build` e `bazel info execution_root`
    a partir da raiz do workspace, de forma síncrona.

Componentes principais:
    - aquery_expression: target → expressão mnemonic("SwiftCompile", deps(...))
    - query_action_graph: stdout JSON da aquery (bytes)
    - build_target: Exit code de `bazel build`
    - execution_root: Path retornado por `bazel info execution_root`

Notas de implementação:
    - Sem timeout: um Bazel travado trava o servidor
    - stdout/stderr/exit code capturados só depois do término do processo
    - Falhas viram SubprocessError (fatal para a requisição, não para o servidor)
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from bazel_bsp.errors import SubprocessError

logger = logging.getLogger(__name__)

BAZEL = "bazel"
SWIFT_COMPILE_MNEMONIC = "SwiftCompile"


def aquery_expression(target: str) -> str:
    return f'mnemonic("{SWIFT_COMPILE_MNEMONIC}", deps({target}))'


def run_bazel(
    args: Sequence[str], cwd: Path, log: Optional[logging.Logger] = None
) -> subprocess.CompletedProcess:
    """Executa o Bazel e devolve o processo concluído (stdout/stderr em bytes)."""
    log = log or logger
    command = [BAZEL, *args]
    log.info(f"Executando: {' '.join(command)} (cwd={cwd})")
    try:
        return subprocess.run(command, cwd=str(cwd), capture_output=True, check=False)
    except OSError as e:
        raise SubprocessError(f"Falha ao executar {BAZEL}: {e}") from e


def query_action_graph(
    target: str,
    cwd: Path,
    extra_args: Sequence[str] = (),
    log: Optional[logging.Logger] = None,
) -> bytes:
    """
    Executa a aquery de SwiftCompile para o target e suas dependências.

    Returns:
        stdout da aquery (JSON do grafo de ações)

    Raises:
        SubprocessError: exit code diferente de zero ou stdout vazio
    """
    args = ["aquery", aquery_expression(target), "--output=jsonproto", *extra_args]
    completed = run_bazel(args, cwd, log)
    stderr = _decode(completed.stderr)
    if completed.returncode != 0:
        raise SubprocessError(
            f"bazel aquery falhou com exit code {completed.returncode}",
            returncode=completed.returncode,
            stderr=stderr,
        )
    if not completed.stdout or not completed.stdout.strip():
        raise SubprocessError(
            f"bazel aquery não produziu saída (cwd={cwd})",
            returncode=completed.returncode,
            stderr=stderr,
        )
    return completed.stdout


def build_target(
    target: str,
    cwd: Path,
    extra_args: Sequence[str] = (),
    log: Optional[logging.Logger] = None,
) -> int:
    """Executa `bazel build` e retorna o exit code, logando falhas."""
    log = log or logger
    completed = run_bazel(["build", target, *extra_args], cwd, log)
    if completed.returncode == 0:
        log.info(f"Build concluído: {target}")
    else:
        log.error(f"Build de {target} falhou com exit code {completed.returncode}")
        stderr = _decode(completed.stderr)
        if stderr:
            log.error(f"Saída do build:\n{stderr}")
    return completed.returncode


def execution_root(cwd: Path, log: Optional[logging.Logger] = None) -> str:
    """Retorna o execution root do workspace via `bazel info execution_root`."""
    completed = run_bazel(["info", "execution_root"], cwd, log)
    path = _decode(completed.stdout).strip()
    if completed.returncode != 0 or not path:
        raise SubprocessError(
            f"bazel info execution_root falhou com exit code {completed.returncode}",
            returncode=completed.returncode,
            stderr=_decode(completed.stderr),
        )
    return path


def _decode(data) -> str:
    if not data:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)
