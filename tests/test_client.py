import json

import pytest

from fakes import FakeProcess, collect, delta_event, init_event, make_runner, ndjson, result_event
from passerelle.claude import ClaudeClient, InvocationRequest
from passerelle.config import PasserelleConfig
from passerelle.errors import ClaudeError, ClaudeTimeoutError


def _client(process: FakeProcess, timeout: float = 5.0, **config) -> tuple[ClaudeClient, object]:
    runner, spawner = make_runner(process, timeout=timeout)
    settings = PasserelleConfig(api_keys=["k"], **config)
    return ClaudeClient(settings, runner=runner), spawner


@pytest.mark.asyncio
async def test_invoke_applies_service_defaults() -> None:
    document = json.dumps({
        "type": "result", "is_error": False, "result": "ok", "session_id": "s",
        "usage": {"input_tokens": 1, "output_tokens": 2},
    })
    client, spawner = _client(
        FakeProcess(stdout=document.encode()),
        claude_model="sonnet",
        default_allowed_tools=["WebSearch"],
    )

    reply = await client.invoke(InvocationRequest(prompt="hi"))

    argv = spawner.calls[0][0]
    assert argv[0] == "claude"
    assert argv[argv.index("--model") + 1] == "sonnet"
    assert argv[argv.index("--allowedTools") + 1] == "WebSearch"
    assert reply.result == "ok"
    assert reply.usage.output_tokens == 2


@pytest.mark.asyncio
async def test_invoke_timeout_is_reported() -> None:
    client, _ = _client(FakeProcess(hang=True), timeout=0.05)

    with pytest.raises(ClaudeTimeoutError):
        await client.invoke(InvocationRequest(prompt="hi"))


@pytest.mark.asyncio
async def test_invoke_streaming_yields_text_then_done() -> None:
    payload = ndjson(init_event("s-7"), delta_event("Hel", "s-7"), delta_event("lo", "s-7"), result_event(session_id="s-7"))
    client, spawner = _client(FakeProcess(stdout=[payload]))

    chunks = await collect(client.invoke_streaming(InvocationRequest(prompt="hi", stream=True)))

    assert "stream-json" in spawner.calls[0][0]
    assert [(c.type, c.text) for c in chunks] == [("text", "Hel"), ("text", "lo"), ("done", "")]
    assert chunks[-1].session_id == "s-7"


@pytest.mark.asyncio
async def test_closing_stream_early_kills_process() -> None:
    process = FakeProcess(stdout=[ndjson(delta_event("un")), ndjson(delta_event("deux"))], hang=True)
    client, _ = _client(process)

    chunks = client.invoke_streaming(InvocationRequest(prompt="hi", stream=True))
    first = await chunks.__anext__()
    await chunks.aclose()

    assert first.text == "un"
    assert process.killed is True


@pytest.mark.asyncio
async def test_error_record_kills_then_fails() -> None:
    process = FakeProcess(stdout=[ndjson(result_event(is_error=True, result="nope"))], hang=True)
    client, _ = _client(process)

    with pytest.raises(ClaudeError, match="nope"):
        await collect(client.invoke_streaming(InvocationRequest(prompt="hi", stream=True)))

    assert process.killed is True


@pytest.mark.asyncio
async def test_mode_mismatch_is_rejected() -> None:
    client, _ = _client(FakeProcess())

    with pytest.raises(ValueError):
        await client.invoke(InvocationRequest(prompt="hi", stream=True))
    with pytest.raises(ValueError):
        await collect(client.invoke_streaming(InvocationRequest(prompt="hi")))
