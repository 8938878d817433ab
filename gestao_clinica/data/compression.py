"""
Codec dos blobs de arquivo: JSON -> zlib -> base64 (texto), para caber no
KVStore que só aceita strings.
"""

import base64
import binascii
import json
import zlib

from gestao_clinica.errors import CompressionError

COMPRESSION_LEVEL = 6


def compress(obj) -> str:
    try:
        raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
        return base64.b64encode(zlib.compress(raw, COMPRESSION_LEVEL)).decode("ascii")
    except (TypeError, ValueError) as e:
        raise CompressionError(f"Falha ao comprimir dados: {e}") from e


def decompress(data: str):
    try:
        raw = zlib.decompress(base64.b64decode(data.encode("ascii"), validate=True))
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, zlib.error, UnicodeError, ValueError, AttributeError) as e:
        raise CompressionError(f"Falha ao descomprimir dados: {e}") from e
