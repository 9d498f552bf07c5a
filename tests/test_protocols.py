import json
import time

import pytest

from fakes import FakeProcess, collect, delta_event, init_event, make_runner, ndjson, result_event
from passerelle.claude import ProcessResult, StreamChunk, TokenUsage, decode_result, decode_stream
from passerelle.errors import ClaudeError
from passerelle.protocols import ollama, openai


async def _chunks(*items: StreamChunk, error: Exception | None = None):
    for item in items:
        yield item
    if error is not None:
        raise error


def _done(input_tokens: int = 3, output_tokens: int = 1) -> StreamChunk:
    return StreamChunk(
        type="done",
        session_id="sess-1",
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        duration_ms=250,
    )


def _sse_payloads(frames: list[str]) -> list[str]:
    assert all(frame.startswith("data: ") and frame.endswith("\n\n") for frame in frames)
    return [frame[len("data: "):-2] for frame in frames]


# === Ollama ===

@pytest.mark.asyncio
async def test_ollama_stream_framing() -> None:
    lines = await collect(ollama.stream_chat(
        _chunks(StreamChunk(type="text", session_id="sess-1", text="Hello"), _done()),
        "claude-code",
        time.monotonic(),
    ))

    assert all(line.endswith("\n") and line.count("\n") == 1 for line in lines)
    records = [json.loads(line) for line in lines]
    assert len(records) == 2

    first, final = records
    assert first["done"] is False
    assert first["message"] == {"role": "assistant", "content": "Hello"}
    assert first["model"] == "claude-code"
    assert first["created_at"].endswith("Z")

    assert final["done"] is True
    assert final["done_reason"] == "stop"
    assert final["message"]["content"] == ""
    assert final["total_duration"] == 250 * 1_000_000
    assert final["prompt_eval_count"] == 3
    assert final["eval_count"] == 1
    assert final["session_id"] == "sess-1"


@pytest.mark.asyncio
async def test_ollama_generate_uses_response_field() -> None:
    lines = await collect(ollama.stream_generate(
        _chunks(StreamChunk(type="text", text="Salut"), _done()),
        "claude-code",
        time.monotonic(),
    ))

    records = [json.loads(line) for line in lines]
    assert records[0]["response"] == "Salut"
    assert "message" not in records[0]
    assert records[1]["response"] == ""


@pytest.mark.asyncio
async def test_ollama_missing_usage_defaults_to_zero() -> None:
    lines = await collect(ollama.stream_chat(
        _chunks(StreamChunk(type="done", session_id=None)),
        "claude-code",
        time.monotonic(),
    ))

    final = json.loads(lines[-1])
    assert final["prompt_eval_count"] == 0
    assert final["eval_count"] == 0
    assert final["total_duration"] >= 0


@pytest.mark.asyncio
async def test_ollama_midstream_failure_becomes_final_error_record() -> None:
    lines = await collect(ollama.stream_chat(
        _chunks(StreamChunk(type="text", text="début"), error=ClaudeError("Claude CLI exited with code 1")),
        "claude-code",
        time.monotonic(),
    ))

    records = [json.loads(line) for line in lines]
    assert [r["done"] for r in records] == [False, True]
    assert records[-1]["done_reason"] == "error"
    assert records[-1]["message"]["content"] == "Error: Claude CLI exited with code 1"
    assert records[-1]["error"] == "Claude CLI exited with code 1"


# === OpenAI ===

@pytest.mark.asyncio
async def test_openai_stream_framing() -> None:
    frames = await collect(openai.stream_chat(
        _chunks(StreamChunk(type="text", text="Hello"), _done()),
        "claude-code",
        completion_id="chatcmpl-test",
    ))

    payloads = _sse_payloads(frames)
    assert payloads[-1] == "[DONE]"

    role, text, final = (json.loads(p) for p in payloads[:-1])
    for chunk in (role, text, final):
        assert chunk["id"] == "chatcmpl-test"
        assert chunk["object"] == "chat.completion.chunk"
        assert chunk["model"] == "claude-code"
        assert isinstance(chunk["created"], int)

    assert role["choices"][0]["delta"] == {"role": "assistant", "content": ""}
    assert text["choices"][0]["delta"] == {"content": "Hello"}
    assert text["choices"][0]["finish_reason"] is None
    assert final["choices"][0]["delta"] == {}
    assert final["choices"][0]["finish_reason"] == "stop"
    assert final["usage"] == {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4}


@pytest.mark.asyncio
async def test_openai_midstream_failure_becomes_error_frame() -> None:
    frames = await collect(openai.stream_chat(
        _chunks(StreamChunk(type="text", text="début"), error=ClaudeError("boom")),
        "claude-code",
    ))

    payloads = _sse_payloads(frames)
    assert "[DONE]" not in payloads
    assert json.loads(payloads[-1]) == {"error": {"message": "boom", "type": "server_error"}}


@pytest.mark.asyncio
async def test_openai_error_frame_follows_text_decoded_from_same_block() -> None:
    process = FakeProcess(
        stdout=[ndjson(init_event(), delta_event("Hello"), result_event(is_error=True, result="boom"))],
        hang=True,
    )
    runner, _ = make_runner(process)

    async def source():
        async with runner.open_stream(["-p", "hi"]) as stream:
            async for chunk in decode_stream(stream):
                yield chunk

    frames = await collect(openai.stream_chat(source(), "claude-code"))

    payloads = [json.loads(p) for p in _sse_payloads(frames)]
    assert payloads[0]["choices"][0]["delta"] == {"role": "assistant", "content": ""}
    assert payloads[1]["choices"][0]["delta"] == {"content": "Hello"}
    assert payloads[2] == {"error": {"message": "boom", "type": "server_error"}}
    assert len(payloads) == 3
    assert process.killed is True


@pytest.mark.asyncio
async def test_both_adapters_carry_identical_token_counts() -> None:
    done = _done(input_tokens=42, output_tokens=17)

    ollama_lines = await collect(ollama.stream_chat(_chunks(done), "m", time.monotonic()))
    openai_frames = await collect(openai.stream_chat(_chunks(done), "m"))

    ollama_final = json.loads(ollama_lines[-1])
    openai_final = json.loads(_sse_payloads(openai_frames)[-2])
    assert (ollama_final["prompt_eval_count"], ollama_final["eval_count"]) == (42, 17)
    assert openai_final["usage"]["prompt_tokens"] == 42
    assert openai_final["usage"]["completion_tokens"] == 17
    assert openai_final["usage"]["total_tokens"] == 59


@pytest.mark.asyncio
async def test_adapter_closes_source_when_closed_early() -> None:
    closed = []

    async def source():
        try:
            yield StreamChunk(type="text", text="a")
            yield StreamChunk(type="text", text="b")
        finally:
            closed.append(True)

    lines = ollama.stream_chat(source(), "m", time.monotonic())
    await lines.__anext__()
    await lines.aclose()

    assert closed == [True]


# === Non-streaming ===

def test_decoded_reply_survives_both_adapters() -> None:
    document = json.dumps({
        "type": "result",
        "is_error": False,
        "result": "Réponse finale",
        "session_id": "sess-rt",
        "num_turns": 1,
        "duration_ms": 10,
        "usage": {"input_tokens": 7, "output_tokens": 9},
    })
    reply = decode_result(ProcessResult(returncode=0, stdout=document))

    body = openai.chat_response(reply, "claude-code")
    assert body["id"] == "chatcmpl-sess-rt"
    assert body["object"] == "chat.completion"
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "Réponse finale"}
    assert body["usage"] == {"prompt_tokens": 7, "completion_tokens": 9, "total_tokens": 16}

    body = ollama.chat_response(reply, "claude-code", time.monotonic())
    assert body["message"]["content"] == "Réponse finale"
    assert body["session_id"] == "sess-rt"
    assert (body["prompt_eval_count"], body["eval_count"]) == (7, 9)
    assert body["done"] is True
