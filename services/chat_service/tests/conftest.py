from types import SimpleNamespace

import pytest

SERVICE_MODULE = "services.chat_service.src.service"


@pytest.fixture
def anyio_backend():
    return "asyncio"


class _FakeCompletions:
    def __init__(self, provider):
        self._provider = provider

    async def create(self, model=None, messages=None, **kwargs):
        self._provider.requests.append({"model": model, "messages": messages})
        # The last scripted outcome repeats once the script runs out
        outcome = self._provider.script.pop(0) if len(self._provider.script) > 1 else self._provider.script[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome is None:
            return SimpleNamespace(choices=[], usage=None)
        usage = SimpleNamespace(prompt_tokens=3, completion_tokens=4, total_tokens=7)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=outcome))], usage=usage)


class _FakeClient:
    def __init__(self, provider, **kwargs):
        self.kwargs = kwargs
        self.closed = False
        self.chat = SimpleNamespace(completions=_FakeCompletions(provider))

    async def close(self):
        self.closed = True


class FakeProvider:
    """Stands in for openai.AsyncOpenAI. `script` holds answers (str), errors, or None for no choices."""

    def __init__(self):
        self.script = ["ok"]
        self.requests = []
        self.clients = []

    def __call__(self, **kwargs):
        client = _FakeClient(self, **kwargs)
        self.clients.append(client)
        return client

    @property
    def calls(self):
        return len(self.requests)


@pytest.fixture
def provider(monkeypatch):
    import importlib

    mod = importlib.import_module(SERVICE_MODULE)
    fake = FakeProvider()
    monkeypatch.setattr(mod, "AsyncOpenAI", fake)
    return fake


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep
