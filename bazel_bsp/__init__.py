"""
bazel_bsp - Build Server Protocol para projetos Swift com Bazel

Propósito:
    Servidor BSP que entrega ao sourcekit-lsp a lista de targets do Bazel
    e os argumentos de compilação de cada arquivo, a partir do grafo de
    ações produzido por `bazel aquery`.

Componentes principais:
    - transport: Framing Content-Length sobre streams binários
    - server: Máquina de estados do ciclo de vida BSP e dispatch
    - resolver: Achatamento do grafo de ações em targets resolvidos
    - arguments: Reescrita dos argumentos do compilador

Dependências críticas:
    - pygls: URIs de arquivo e códigos de erro JSON-RPC
    - lsprotocol: Constantes e tipos do protocolo

Exemplo de uso:
    python -m bazel_bsp

Notas de implementação:
    - Comunica via STDIO com o cliente (sourcekit-lsp)
    - Single-thread, síncrono: cada mensagem é processada até o fim
    - Cada workspace/buildTargets refaz a aquery completa
"""
from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
import re


def _read_version_from_pyproject() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    try:
        text = pyproject.read_text(encoding="utf-8")
    except OSError:
        return "0.0.0"
    match = re.search(r'(?m)^version = "([^"]+)"\s*$', text)
    return match.group(1) if match else "0.0.0"


try:
    __version__ = _pkg_version("bazel-bsp")
except PackageNotFoundError:
    __version__ = _read_version_from_pyproject()

__all__ = ["server", "transport", "resolver", "arguments"]
