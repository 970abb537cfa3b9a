import pytest
from pydantic import ValidationError

from chat_gateway.config.settings import GatewaySettings


ENV_NAMES = [
    "OPENAI_ENDPOINT",
    "OPENAI_APIKEY",
    "OPENAI_API_KEY",
    "TELEGRAM_BOT",
    "TELEGRAM_BOT_TOKEN",
    "COMPLETION_PROVIDER",
    "MAX_TOOL_ROUNDS",
    "LOG_LEVEL",
    "GATEWAY_CONFIG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    cfg = GatewaySettings(_env_file=None)
    assert cfg.completion_provider == "azure"
    assert cfg.max_tool_rounds == 8
    assert cfg.reply_parse_mode == "Markdown"
    assert cfg.send_failure_notice is True
    assert cfg.image_mime_type == "image/png"


def test_legacy_env_names(monkeypatch):
    monkeypatch.setenv("OPENAI_ENDPOINT", "https://medico.openai.azure.com/")
    monkeypatch.setenv("OPENAI_APIKEY", "0123456789abcdef")
    monkeypatch.setenv("TELEGRAM_BOT", "123:abc")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    cfg = GatewaySettings(_env_file=None)
    assert cfg.openai_endpoint == "https://medico.openai.azure.com"
    assert cfg.openai_api_key == "0123456789abcdef"
    assert cfg.telegram_bot_token == "123:abc"
    assert cfg.log_level == "DEBUG"


def test_yaml_file_and_env_precedence(monkeypatch, tmp_path):
    config_file = tmp_path / "gateway.yaml"
    config_file.write_text(
        "deployment_name: gpt-4o\nmax_tool_rounds: 3\nsend_failure_notice: false\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("GATEWAY_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("MAX_TOOL_ROUNDS", "5")
    cfg = GatewaySettings(_env_file=None)
    assert cfg.deployment_name == "gpt-4o"
    assert cfg.send_failure_notice is False
    assert cfg.max_tool_rounds == 5


def test_dotenv_file(tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("TELEGRAM_BOT_TOKEN=999:zzz\nCOMPLETION_PROVIDER=openai\n", encoding="utf-8")
    cfg = GatewaySettings(_env_file=env_file)
    assert cfg.telegram_bot_token == "999:zzz"
    assert cfg.completion_provider == "openai"


def test_invalid_values_rejected(monkeypatch):
    monkeypatch.setenv("OPENAI_APIKEY", "short")
    with pytest.raises(ValidationError):
        GatewaySettings(_env_file=None)
    monkeypatch.delenv("OPENAI_APIKEY")
    with pytest.raises(ValidationError):
        GatewaySettings(_env_file=None, max_tool_rounds=21)
