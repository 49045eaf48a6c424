"""
server.py - Servidor BSP principal para Bazel + sourcekit-lsp

Propósito:
    Máquina de estados do ciclo de vida BSP: faz o handshake de
    build/initialize, depois lê, despacha e responde mensagens até
    build/exit, EOF ou um método desconhecido.

Componentes principais:
    - BazelBuildServer: Transporte, sessão, estado e loop de mensagens
    - feature: Registro de handlers por RequestMethod
    - Handlers: build/initialize, workspace/buildTargets, buildTarget/sources,
      textDocument/sourceKitOptions, textDocument/registerForChanges,
      buildTarget/prepare, build/shutdown, build/exit e no-ops
    - main: Ponto de entrada STDIO

Dependências críticas:
    - pygls: URIs de arquivo e erros JSON-RPC
    - lsprotocol: Tipos de workspace/didChangeWatchedFiles
    - bazel_bsp.resolver: Achatamento do grafo da aquery

Exemplo de uso:
    python -m bazel_bsp

Notas de implementação:
    - Comunica via STDIO; logs vão para stderr (stdout é o canal do protocolo)
    - Single-thread: cada mensagem (inclusive subprocessos) bloqueia o loop
    - Primeira mensagem diferente de build/initialize é fatal
    - Método desconhecido é fatal (encerra o loop com exit code 1)
    - Demais erros afetam só a requisição que os causou
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional

from lsprotocol import converters as lsp_converters
from lsprotocol.types import DidChangeWatchedFilesParams
from pygls.exceptions import (
    JsonRpcInvalidRequest,
    JsonRpcParseError,
    JsonRpcServerNotInitialized,
)
from pygls.uris import to_fs_path

from bazel_bsp import __version__, bazel
from bazel_bsp.config import load_config
from bazel_bsp.converters import (
    build_initialize_result,
    build_options_changed,
    build_sourcekit_options,
    build_sources_item,
    build_target,
)
from bazel_bsp.errors import (
    BuildServerError,
    ConfigError,
    EndOfStream,
    FramingError,
    IncompleteMessageError,
    ProtocolError,
    SubprocessError,
    TargetNotFoundError,
    to_response_error,
)
from bazel_bsp.methods import SOURCEKIT_OPTIONS_CHANGED, LifecycleState, RequestMethod
from bazel_bsp.resolver import ActionGraphResolver, ResolvedTarget
from bazel_bsp.session import Session
from bazel_bsp.transport import Transport

# Configuração de logging
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"

Handler = Callable[["BazelBuildServer", Any], Any]
FEATURES: dict[RequestMethod, Handler] = {}


def feature(method: RequestMethod) -> Callable[[Handler], Handler]:
    """Registra o handler de um método BSP."""

    def decorator(fn: Handler) -> Handler:
        FEATURES[method] = fn
        return fn

    return decorator


class BazelBuildServer:
    """
    Servidor BSP síncrono sobre um par de streams binários.

    Attributes:
        transport: Framing Content-Length sobre rfile/wfile
        state: Estado atual do ciclo de vida
        session: Estado criado no build/initialize (None antes disso)
        resolver: Resolvedor do grafo de ações configurado no initialize
        exit_code: Código de saída do processo ao fim do loop
    """

    def __init__(
        self,
        rfile: BinaryIO,
        wfile: BinaryIO,
        logger: Optional[logging.Logger] = None,
    ):
        self.transport = Transport(rfile, wfile)
        self.logger = logger or logging.getLogger(__name__)
        self.state = LifecycleState.UNINITIALIZED
        self.session: Optional[Session] = None
        self.resolver: Optional[ActionGraphResolver] = None
        self.exit_code = 0

    # --- Mensagens ---

    def read(self) -> dict:
        """Lê e decodifica a próxima mensagem."""
        return decode_message_body(self.transport.read_message())

    def send(self, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.transport.write_message(body)
        self.logger.debug(f"Enviado: {body.decode('utf-8')}")

    def send_response(self, msg_id, result=None) -> None:
        self.send({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "result": result})

    def send_error(self, msg_id, error: BaseException) -> None:
        self.send({"jsonrpc": JSONRPC_VERSION, "id": msg_id, "error": to_response_error(error)})

    def send_notification(self, method: str, params=None) -> None:
        self.send({"jsonrpc": JSONRPC_VERSION, "method": method, "params": params})

    # --- Ciclo de vida ---

    def run(self) -> int:
        """Handshake + loop. Retorna o exit code do processo."""
        try:
            self.initialize()
        except BuildServerError as e:
            self.logger.critical(f"Falha no build/initialize: {e}")
            self.state = LifecycleState.EXITED
            self.exit_code = 1
            return self.exit_code
        return self.serve()

    def initialize(self) -> None:
        """
        Processa a primeira mensagem, que precisa ser build/initialize.

        Raises:
            EndOfStream / FramingError: stream fechado ou framing inválido
            ProtocolError: corpo inválido ou método diferente de build/initialize
            ConfigError / SubprocessError: root ou buildServer.json inválidos
        """
        message = self.read()
        method = RequestMethod.parse(message.get("method"))
        msg_id = message.get("id")

        if method is not RequestMethod.BUILD_INITIALIZE:
            error = ProtocolError(
                f"Primeira mensagem deve ser build/initialize, recebido {message.get('method')!r}"
            )
            if "id" in message:
                self.send_error(msg_id, JsonRpcServerNotInitialized(message=str(error)))
            raise error

        try:
            result = FEATURES[RequestMethod.BUILD_INITIALIZE](self, message.get("params"))
        except BuildServerError as e:
            if "id" in message:
                self.send_error(msg_id, e)
            raise

        self.state = LifecycleState.INITIALIZED
        self.send_response(msg_id, result)
        self.logger.info("Servidor inicializado")

    def serve(self) -> int:
        """Loop read-dispatch-write até build/exit, EOF ou erro fatal."""
        while self.state is not LifecycleState.EXITED:
            try:
                message = self.read()
            except EndOfStream:
                self.logger.info("Cliente desconectou")
                break
            except IncompleteMessageError as e:
                self.logger.warning(f"Stream encerrado no meio de uma mensagem: {e}")
                break
            except FramingError as e:
                self.logger.error(f"Erro de framing, mensagem descartada: {e}")
                continue
            except ProtocolError as e:
                self.logger.error(f"Mensagem inválida: {e}")
                self.send_error(None, JsonRpcParseError(message=str(e)))
                continue

            self.handle_message(message)

        self.logger.info(f"Loop encerrado (estado={self.state.value}, exit code={self.exit_code})")
        return self.exit_code

    def handle_message(self, message: dict) -> None:
        """Despacha uma mensagem já decodificada e responde se for requisição."""
        name = message.get("method")
        method = RequestMethod.parse(name)
        is_request = "id" in message
        msg_id = message.get("id")
        self.logger.debug(f"Recebido: {name} (id={msg_id})")

        if method is RequestMethod.UNKNOWN:
            self.logger.error(f"Método desconhecido: {name!r}; encerrando servidor")
            self.state = LifecycleState.EXITED
            self.exit_code = 1
            return

        if method is RequestMethod.BUILD_INITIALIZE:
            if is_request:
                self.send_error(msg_id, JsonRpcInvalidRequest(message="Servidor já inicializado"))
            return

        if self.state is LifecycleState.SHUTTING_DOWN and method is not RequestMethod.BUILD_EXIT:
            self.logger.warning(f"{name} recebido após build/shutdown")
            if is_request:
                self.send_error(msg_id, JsonRpcInvalidRequest(message="Servidor em shutdown"))
            return

        handler = FEATURES[method]
        try:
            result = handler(self, message.get("params"))
        except BuildServerError as e:
            self.logger.error(f"{name} falhou: {e}")
            if is_request:
                self.send_error(msg_id, e)
            return
        except Exception as e:
            # Erro inesperado afeta só esta requisição
            self.logger.error(f"Erro inesperado em {name} ({type(e).__name__}): {e}", exc_info=True)
            if is_request:
                self.send_error(msg_id, e)
            return

        if is_request and method is not RequestMethod.BUILD_EXIT:
            self.send_response(msg_id, result)

    # --- Resolução ---

    def require_session(self) -> Session:
        if self.session is None or self.resolver is None:
            raise ProtocolError("Servidor não inicializado")
        return self.session

    def resolve_targets(self) -> tuple[ResolvedTarget, ...]:
        """Refaz a aquery completa e substitui os targets da sessão."""
        session = self.require_session()
        raw = bazel.query_action_graph(
            session.config.target,
            session.root_path,
            session.config.aquery_args,
            log=self.logger,
        )
        session.replace_targets(self.resolver.resolve(raw))
        return session.targets


def decode_message_body(body: bytes) -> dict:
    """Decodifica o corpo JSON de uma mensagem recebida."""
    try:
        message = json.loads(body)
    except ValueError as e:
        raise ProtocolError(f"Corpo da mensagem não é JSON válido: {e}") from e
    if not isinstance(message, dict):
        raise ProtocolError("Mensagem JSON-RPC deve ser um objeto")
    if not isinstance(message.get("method"), str):
        raise ProtocolError("Mensagem sem campo 'method'")
    return message


def _require_params(params, method: str) -> dict:
    if not isinstance(params, dict):
        raise ProtocolError(f"{method} requer params como objeto")
    return params


def _uri_of(identifier) -> Optional[str]:
    """Extrai `uri` de um TextDocumentIdentifier/BuildTargetIdentifier."""
    if isinstance(identifier, dict):
        uri = identifier.get("uri")
        if isinstance(uri, str) and uri:
            return uri
    return None


def _root_path_from_uri(root_uri: str) -> Path:
    if root_uri.startswith("file:"):
        path = to_fs_path(root_uri)
    else:
        path = root_uri
    if not path:
        raise ConfigError(f"rootUri inválido: {root_uri!r}")
    root_path = Path(path)
    if not root_path.is_dir():
        raise ConfigError(f"rootUri não aponta para um diretório: {root_path}")
    return root_path


def _attach_file_log(log_path: str) -> Optional[logging.Handler]:
    """Adiciona um FileHandler (truncado) ao logger raiz; falha não é fatal."""
    path = Path(os.path.expanduser(log_path))
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    except OSError as e:
        logger.warning(f"Não foi possível abrir log em {path}: {e}")
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    logger.info(f"Log em arquivo: {path}")
    return handler


# --- Handlers ---


@feature(RequestMethod.BUILD_INITIALIZE)
def build_initialize(bs: BazelBuildServer, params) -> dict:
    """
    Handshake inicial: resolve a raiz, lê buildServer.json e cria a sessão.

    Fluxo:
        1. rootUri (file URI) → diretório raiz
        2. buildServer.json → BuildServerConfig
        3. executionRoot da config ou `bazel info execution_root`
        4. Session + ActionGraphResolver
    """
    params = _require_params(params, RequestMethod.BUILD_INITIALIZE.value)
    root_uri = params.get("rootUri")
    if not isinstance(root_uri, str) or not root_uri:
        raise ConfigError("build/initialize sem rootUri")

    root_path = _root_path_from_uri(root_uri)
    config = load_config(root_path)
    if config.log_path:
        _attach_file_log(config.log_path)

    execution_root = config.execution_root or bazel.execution_root(root_path, bs.logger)

    bs.session = Session(config=config, root_path=root_path, execution_root=execution_root)
    bs.resolver = ActionGraphResolver.from_config(
        config, root_path, execution_root, logger=bs.logger
    )
    bs.logger.info(
        f"Cliente {params.get('displayName', '?')} {params.get('version', '')} "
        f"(BSP {params.get('bspVersion', '?')}), raiz {root_path}, execroot {execution_root}"
    )
    return build_initialize_result(config, __version__)


@feature(RequestMethod.BUILD_INITIALIZED)
def build_initialized(bs: BazelBuildServer, params) -> None:
    bs.logger.info("Cliente confirmou build/initialized")


@feature(RequestMethod.WORKSPACE_BUILD_TARGETS)
def workspace_build_targets(bs: BazelBuildServer, params) -> dict:
    """Refaz a aquery e retorna todos os targets resolvidos."""
    targets = bs.resolve_targets()
    return {"targets": [build_target(target) for target in targets]}


@feature(RequestMethod.BUILD_TARGET_SOURCES)
def build_target_sources(bs: BazelBuildServer, params) -> dict:
    """
    Retorna os arquivos de entrada de cada target pedido.

    Usa a última resolução; target desconhecido → TargetNotFoundError.
    """
    session = bs.require_session()
    params = _require_params(params, RequestMethod.BUILD_TARGET_SOURCES.value)
    requested = params.get("targets")
    if not isinstance(requested, list):
        raise ProtocolError("buildTarget/sources requer a lista 'targets'")

    items = []
    for identifier in requested:
        uri = _uri_of(identifier)
        if not uri:
            raise ProtocolError(f"Identificador de target inválido: {identifier!r}")
        target = session.find_target(uri)
        items.append(build_sources_item(target, session.root_uri))
    return {"items": items}


@feature(RequestMethod.TEXT_DOCUMENT_SOURCEKIT_OPTIONS)
def text_document_sourcekit_options(bs: BazelBuildServer, params) -> dict:
    """
    Retorna os argumentos do compilador para o target pedido.

    Sem `target` nos params, usa o target que contém textDocument.uri.
    """
    session = bs.require_session()
    params = _require_params(params, RequestMethod.TEXT_DOCUMENT_SOURCEKIT_OPTIONS.value)
    target_uri = _uri_of(params.get("target"))
    document_uri = _uri_of(params.get("textDocument"))

    if target_uri:
        target = session.find_target(target_uri)
    elif document_uri:
        target = session.find_target_for_file(document_uri)
        if target is None:
            raise TargetNotFoundError(document_uri)
    else:
        raise ProtocolError("textDocument/sourceKitOptions requer 'target' ou 'textDocument'")

    return build_sourcekit_options(target.compiler_arguments, session.root_path)


@feature(RequestMethod.TEXT_DOCUMENT_REGISTER_FOR_CHANGES)
def text_document_register_for_changes(bs: BazelBuildServer, params) -> None:
    """
    Modelo push legado: envia build/sourceKitOptionsChanged para o arquivo.

    Resolve os targets na primeira chamada se ainda não houve resolução.
    Nunca falha: sem target correspondente, envia defaultSettings da config
    (vazio por padrão).
    """
    session = bs.require_session()
    uri = params.get("uri") if isinstance(params, dict) else None
    if not isinstance(uri, str) or not uri:
        bs.logger.warning(f"registerForChanges sem uri: {params!r}")
        return None

    if not session.has_resolved:
        try:
            bs.resolve_targets()
        except BuildServerError as e:
            bs.logger.error(f"Resolução para registerForChanges falhou: {e}")

    options = list(session.config.default_settings)
    target = session.find_target_for_file(uri)
    if target is not None:
        options = list(target.compiler_arguments)
    else:
        bs.logger.info(f"Nenhum target contém {uri}; usando defaultSettings ({len(options)} opções)")

    bs.send_notification(
        SOURCEKIT_OPTIONS_CHANGED,
        build_options_changed(uri, options, session.root_path),
    )
    return None


@feature(RequestMethod.BUILD_TARGET_PREPARE)
def build_target_prepare(bs: BazelBuildServer, params) -> None:
    """Executa `bazel build` do target configurado; responde sempre vazio."""
    session = bs.require_session()
    try:
        bazel.build_target(
            session.config.target,
            session.root_path,
            session.config.aquery_args,
            log=bs.logger,
        )
    except SubprocessError as e:
        bs.logger.error(f"buildTarget/prepare falhou: {e}")
    return None


@feature(RequestMethod.WORKSPACE_WAIT_FOR_BUILD_SYSTEM_UPDATES)
def workspace_wait_for_build_system_updates(bs: BazelBuildServer, params) -> None:
    # Sem estado incremental: não há atualização pendente
    return None


_lsp_converter = lsp_converters.get_converter()


@feature(RequestMethod.WORKSPACE_DID_CHANGE_WATCHED_FILES)
def workspace_did_change_watched_files(bs: BazelBuildServer, params) -> None:
    """Apenas registra as mudanças; a próxima buildTargets refaz tudo."""
    try:
        change_params = _lsp_converter.structure(params, DidChangeWatchedFilesParams)
    except Exception as e:
        bs.logger.warning(f"Params inválidos em didChangeWatchedFiles: {e}")
        return None

    for change in change_params.changes:
        bs.logger.info(f"Arquivo monitorado mudou: {change.uri} (tipo: {change.type.name})")
    return None


@feature(RequestMethod.BUILD_SHUTDOWN)
def build_shutdown(bs: BazelBuildServer, params) -> None:
    bs.logger.info("build/shutdown recebido")
    bs.state = LifecycleState.SHUTTING_DOWN
    return None


@feature(RequestMethod.BUILD_EXIT)
def build_exit(bs: BazelBuildServer, params) -> None:
    # exit sem shutdown prévio termina com exit code 1
    bs.exit_code = 0 if bs.state is LifecycleState.SHUTTING_DOWN else 1
    bs.state = LifecycleState.EXITED
    bs.logger.info("build/exit recebido")
    return None


def main() -> None:
    """
    Ponto de entrada principal do servidor.

    Inicia o servidor BSP em modo STDIO para o sourcekit-lsp.
    """
    logger.info(f"Iniciando bazel-bsp {__version__}...")
    logger.info("Python executable: %s", sys.executable)
    server = BazelBuildServer(sys.stdin.buffer, sys.stdout.buffer)
    try:
        exit_code = server.run()
    except KeyboardInterrupt:
        logger.info("Interrompido, encerrando")
        exit_code = 0
    except Exception as e:
        logger.critical(f"Falha fatal no servidor: {e}", exc_info=True)
        exit_code = 1
    logger.info(f"Servidor encerrado (exit code {exit_code})")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
