"""
errors.py - Taxonomia de erros do servidor BSP

Propósito:
    Centraliza as exceções levantadas pelo transporte, pela configuração,
    pelo Bazel e pelo resolvedor do grafo de ações, e o mapeamento de cada
    uma para um erro JSON-RPC enviado ao cliente.

Componentes principais:
    - BuildServerError: Base de todos os erros do servidor
    - FramingError / EndOfStream / IncompleteMessageError: Falhas de framing
    - ProtocolError: Corpo inválido ou método desconhecido
    - ConfigError: buildServer.json ausente ou inválido
    - SubprocessError: Bazel retornou erro ou saída ilegível
    - ResolutionError: Grafo de ações inconsistente (id ausente)
    - TargetNotFoundError: Target/arquivo fora da última resolução
    - to_response_error: Exceção → payload `error` do JSON-RPC

Notas de implementação:
    - Os códigos vêm das classes de exceção do pygls
    - EndOfStream é um FramingError mas encerra a sessão sem erro
"""

from __future__ import annotations

from pygls.exceptions import (
    JsonRpcException,
    JsonRpcInternalError,
    JsonRpcInvalidParams,
    JsonRpcInvalidRequest,
    JsonRpcParseError,
)


class BuildServerError(Exception):
    """Erro base do servidor."""

    jsonrpc_error: type[JsonRpcException] = JsonRpcInternalError


class FramingError(BuildServerError):
    """Cabeçalhos ausentes ou inválidos no framing Content-Length."""

    jsonrpc_error = JsonRpcParseError


class EndOfStream(FramingError):
    """Stream fechado antes de qualquer cabeçalho Content-Length."""


class IncompleteMessageError(FramingError):
    """Stream fechado no meio de uma mensagem já anunciada."""

    def __init__(self, expected: int, received: int):
        super().__init__(
            f"Mensagem incompleta: esperados {expected} bytes, recebidos {received}"
        )
        self.expected = expected
        self.received = received


class ProtocolError(BuildServerError):
    """Mensagem que não pode ser interpretada ou método não suportado."""

    jsonrpc_error = JsonRpcInvalidRequest


class ConfigError(BuildServerError):
    """buildServer.json ausente, malformado ou root path inválido."""


class SubprocessError(BuildServerError):
    """Comando do Bazel falhou ou produziu saída inutilizável."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ResolutionError(BuildServerError):
    """Grafo de ações referencia um id inexistente."""


class TargetNotFoundError(BuildServerError):
    """Target ou arquivo não presente na última resolução."""

    jsonrpc_error = JsonRpcInvalidParams

    def __init__(self, uri: str):
        super().__init__(f"Target não encontrado: {uri}")
        self.uri = uri


def to_response_error(error: BaseException) -> dict:
    """Converte uma exceção no objeto `error` de uma resposta JSON-RPC."""
    if isinstance(error, JsonRpcException):
        rpc_error = error
    elif isinstance(error, BuildServerError):
        rpc_error = error.jsonrpc_error(message=str(error))
    else:
        # Detalhes de exceções inesperadas ficam só no log
        rpc_error = JsonRpcInternalError(message="Erro interno do servidor")
    return {"code": rpc_error.code, "message": rpc_error.message}
