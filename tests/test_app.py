import io

import pytest

from q_cli import app as app_module
from q_cli.app import QApp, parse_args
from q_cli.backends import LLMBackend
from q_cli.config import ConfigManager
from q_cli.errors import InvalidKeyError
from q_cli.models import Provider

GEMINI_KEY = "g" * 39


class EchoBackend(LLMBackend):
    provider = Provider.GEMINI
    default_model = "echo-model"
    prompts = []
    closed = False

    async def send_query(self, prompt):
        EchoBackend.prompts.append(prompt)
        return "Hello, world!"

    async def send_streaming_query(self, prompt):
        EchoBackend.prompts.append(prompt)
        for chunk in ("Hello", ", ", "world!"):
            yield chunk

    async def validate_key(self):
        if self.api_key != GEMINI_KEY:
            raise InvalidKeyError()

    async def aclose(self):
        EchoBackend.closed = True


@pytest.fixture
def echo_backend(monkeypatch):
    EchoBackend.prompts = []
    EchoBackend.closed = False
    created = []

    def factory(provider, api_key, model=None, settings=None, base_url=None):
        backend = EchoBackend(api_key, model=model, settings=settings)
        created.append((provider, backend))
        return backend

    monkeypatch.setattr(app_module, "create_backend", factory)
    return created


def test_parse_query_arguments():
    args = parse_args(["-H", "-D", "--no-cache", "--retries", "5", "-P", "gemini", "-d", "detailed", "why?"])

    assert args.command is None
    assert args.prompt == "why?"
    assert args.history and args.directory and args.no_cache
    assert args.retries == 5
    assert args.provider == "gemini"
    assert args.detail == "detailed"


def test_parse_subcommand():
    args = parse_args(["set-key", "openai", "sk-abc"])

    assert args.command == "set-key"
    assert args.provider == "openai"
    assert args.key == "sk-abc"


def test_prompt_that_is_not_a_subcommand():
    assert parse_args(["set the key"]).prompt == "set the key"


def test_set_key_command(config_path):
    assert QApp(config_path).run(["set-key", "gemini", GEMINI_KEY]) == 0
    assert ConfigManager(config_path).get_api_key(Provider.GEMINI) == GEMINI_KEY


def test_set_key_rejects_malformed_key(config_path, capsys):
    assert QApp(config_path).run(["set-key", "openai", "not-a-key"]) == 1
    assert "must start with" in capsys.readouterr().err


def test_set_provider_and_model(config_path):
    app = QApp(config_path)
    assert app.run(["set-provider", "Gemini"]) == 0
    assert app.run(["set-model", "gemini", "gemini-1.5-pro"]) == 0

    manager = ConfigManager(config_path)
    assert manager.default_provider is Provider.GEMINI
    assert manager.get_model(Provider.GEMINI) == "gemini-1.5-pro"


def test_unknown_provider_fails(config_path, capsys):
    assert QApp(config_path).run(["set-provider", "anthropic"]) == 1
    assert "Unknown provider" in capsys.readouterr().err


def test_validate_key(config_path, echo_backend):
    app = QApp(config_path)
    assert app.run(["validate-key"]) == 1

    assert app.run(["set-key", "gemini", GEMINI_KEY]) == 0
    assert app.run(["validate-key"]) == 0
    assert [provider for provider, _ in echo_backend] == [Provider.GEMINI]
    assert EchoBackend.closed


def test_query_streams_response(config_path, echo_backend, monkeypatch, capsys):
    monkeypatch.setenv("GEMINI_API_KEY", GEMINI_KEY)

    assert QApp(config_path).run(["-P", "gemini", "say hello"]) == 0

    captured = capsys.readouterr()
    assert "Hello, world!" in captured.out
    assert "provider: gemini, model: gemini-2.0-flash" in captured.err
    assert EchoBackend.prompts == ["say hello"]
    assert EchoBackend.closed


def test_query_without_stream(config_path, echo_backend, monkeypatch, capsys):
    monkeypatch.setenv("GEMINI_API_KEY", GEMINI_KEY)

    assert QApp(config_path).run(["-P", "gemini", "--no-stream", "-M", "custom", "say hello"]) == 0

    _, backend = echo_backend[0]
    assert backend.model_name() == "custom"
    assert "Hello, world!" in capsys.readouterr().out


def test_query_includes_file_context(config_path, echo_backend, monkeypatch, tmp_path):
    monkeypatch.setenv("GEMINI_API_KEY", GEMINI_KEY)
    notes = tmp_path / "notes.txt"
    notes.write_text("remember the milk\n", encoding="utf-8")

    assert QApp(config_path).run(["-P", "gemini", "-F", str(notes), "summarize"]) == 0

    prompt = EchoBackend.prompts[0]
    assert prompt.startswith("Context:\nFile: ")
    assert "remember the milk" in prompt
    assert prompt.endswith("Prompt: summarize")


def test_query_without_key_fails(config_path, echo_backend, capsys):
    assert QApp(config_path).run(["-P", "openai", "hello"]) == 1
    assert "q set-key openai" in capsys.readouterr().err
    assert echo_backend == []


def test_prompt_read_from_stdin(config_path, echo_backend, monkeypatch, tmp_path):
    monkeypatch.setenv("GEMINI_API_KEY", GEMINI_KEY)
    monkeypatch.setattr("q_cli.terminal_input.PROMPT_HISTORY_FILE", tmp_path / "prompt_history")
    monkeypatch.setattr("sys.stdin", io.StringIO("piped question\n"))

    assert QApp(config_path).run(["-P", "gemini"]) == 0
    assert EchoBackend.prompts == ["piped question"]


def test_empty_stdin_is_an_error(config_path, monkeypatch, tmp_path):
    monkeypatch.setattr("q_cli.terminal_input.PROMPT_HISTORY_FILE", tmp_path / "prompt_history")
    monkeypatch.setattr("sys.stdin", io.StringIO(""))

    assert QApp(config_path).run([]) == 1
