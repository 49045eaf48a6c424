"""
transport.py - Framing Content-Length sobre streams binários

Propósito:
    Lê e escreve mensagens JSON-RPC no formato
    `Content-Length: <n>\\r\\n\\r\\n<n bytes>`, sem interpretar o corpo.

Componentes principais:
    - Transport: Par de streams (entrada/saída) com read_message/write_message
    - encode_message / decode_message: Framing em memória

Notas de implementação:
    - Cabeçalhos terminam em CRLF; LF puro também é aceito
    - Chaves de cabeçalho são case-insensitive; só Content-Length importa
    - EOF antes de Content-Length → EndOfStream (fim normal da sessão)
    - EOF depois de Content-Length → IncompleteMessageError
    - write_message sempre faz flush antes de retornar
"""

from __future__ import annotations

import io
from typing import BinaryIO, Optional

from bazel_bsp.errors import EndOfStream, FramingError, IncompleteMessageError

CONTENT_LENGTH = "content-length"


class Transport:
    """Leitura e escrita de mensagens com framing Content-Length."""

    def __init__(self, rfile: BinaryIO, wfile: BinaryIO):
        self._rfile = rfile
        self._wfile = wfile

    def read_message(self) -> bytes:
        """
        Lê a próxima mensagem do stream de entrada.

        Returns:
            Corpo da mensagem (bytes JSON, não decodificados)

        Raises:
            EndOfStream: stream fechado antes de um Content-Length
            IncompleteMessageError: stream fechado no meio da mensagem
            FramingError: cabeçalhos terminaram sem Content-Length válido
        """
        content_length = self._read_headers()

        body = self._rfile.read(content_length) if content_length else b""
        # read() em pipes pode devolver menos bytes que o pedido
        while len(body) < content_length:
            chunk = self._rfile.read(content_length - len(body))
            if not chunk:
                raise IncompleteMessageError(content_length, len(body))
            body += chunk
        return body

    def _read_headers(self) -> int:
        content_length: Optional[int] = None
        while True:
            line = self._rfile.readline()
            if not line:
                if content_length is None:
                    raise EndOfStream("Stream fechado")
                raise IncompleteMessageError(content_length, 0)

            line = line.rstrip(b"\r\n")
            if not line:
                break

            key, sep, value = line.decode("ascii", errors="replace").partition(":")
            if not sep:
                continue
            if key.strip().lower() == CONTENT_LENGTH:
                try:
                    content_length = int(value.strip())
                except ValueError:
                    raise FramingError(f"Content-Length inválido: {value.strip()!r}")
                if content_length < 0:
                    raise FramingError(f"Content-Length negativo: {content_length}")

        if content_length is None:
            raise FramingError("Cabeçalho Content-Length ausente")
        return content_length

    def write_message(self, body: bytes) -> None:
        """Escreve uma mensagem com cabeçalho Content-Length e faz flush."""
        self._wfile.write(encode_message(body))
        self._wfile.flush()


def encode_message(body: bytes) -> bytes:
    """Aplica o framing Content-Length a um corpo."""
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


def decode_message(frame: bytes) -> bytes:
    """Extrai o corpo de um frame completo em memória."""
    return Transport(io.BytesIO(frame), io.BytesIO()).read_message()
