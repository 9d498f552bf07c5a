"""
Cœur d'invocation du CLI Claude.

Construit les arguments, lance le processus, décode sa sortie JSON ou
stream-json en chunks normalisés.
"""

from .args import build_cli_args
from .base import AssistantReply, InvocationRequest, ProcessResult, StreamChunk, TokenUsage
from .client import ClaudeClient
from .decoder import StreamDecoder, decode_result, decode_stream
from .runner import ProcessRunner, ProcessStream

__all__ = [
    "AssistantReply",
    "ClaudeClient",
    "InvocationRequest",
    "ProcessResult",
    "ProcessRunner",
    "ProcessStream",
    "StreamChunk",
    "StreamDecoder",
    "TokenUsage",
    "build_cli_args",
    "decode_result",
    "decode_stream",
]
