"""
Tests for the CLI interface.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from ai_credit_watch.cli.main import app, EXIT_CODE_OK, EXIT_CODE_FAIL
from ai_credit_watch.core.errors import NetworkError
from ai_credit_watch.storage.cache_store import reset_default_store
from ai_credit_watch.storage.models import BalanceRecord

runner = CliRunner()

CREDENTIAL_ARGS = ["--endpoint", "https://api.myninja.ai/v1", "--api-key", "sk-test"]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Fresh process-wide cache, no credential env vars, no config file."""
    reset_default_store()
    monkeypatch.delenv("NINJA_API_BASE_URL", raising=False)
    monkeypatch.delenv("NINJA_API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    with patch('ai_credit_watch.cli.main.configure_logging'):
        yield
    reset_default_store()


@pytest.fixture
def mock_client():
    """Replace the HTTP balance client with an AsyncMock fetcher."""
    with patch('ai_credit_watch.cli.main.BalanceClient') as mock_class:
        instance = MagicMock()
        instance.fetch = AsyncMock(
            return_value=BalanceRecord(balance_nanos=5_000_000_000, keys_status="active")
        )
        mock_class.return_value = instance
        yield instance


class TestBalanceCommand:
    """Test the balance command."""

    def test_balance_success(self, mock_client):
        result = runner.invoke(app, ["balance", *CREDENTIAL_ARGS])

        assert result.exit_code == EXIT_CODE_OK
        assert "$5.00 credits available" in result.output
        assert "Keys status: active" in result.output
        mock_client.fetch.assert_awaited_once()
        credentials = mock_client.fetch.await_args.args[0]
        assert credentials.endpoint == "https://api.myninja.ai/v1"
        assert credentials.secret == "sk-test"

    def test_balance_missing_credentials(self, mock_client):
        result = runner.invoke(app, ["balance"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "API base URL and API key are required" in result.output
        mock_client.fetch.assert_not_called()

    def test_balance_fetch_failure(self, mock_client):
        mock_client.fetch.side_effect = NetworkError(
            "account_balance request failed with status 500", status_code=500
        )

        result = runner.invoke(app, ["balance", *CREDENTIAL_ARGS])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error fetching balance" in result.output
        assert "status 500" in result.output

    def test_balance_uses_environment(self, mock_client, monkeypatch):
        monkeypatch.setenv("NINJA_API_BASE_URL", "https://api.prod.myninja.ai/v1")
        monkeypatch.setenv("NINJA_API_KEY", "sk-env")

        result = runner.invoke(app, ["balance"])

        assert result.exit_code == EXIT_CODE_OK
        credentials = mock_client.fetch.await_args.args[0]
        assert credentials.endpoint == "https://api.myninja.ai/v1"
        assert credentials.secret == "sk-env"

    def test_balance_reads_config_file(self, mock_client, tmp_path):
        config_path = tmp_path / "watch.yaml"
        config_path.write_text(
            "endpoint: https://api.example.com/v1\n"
            "api_key: sk-file\n"
            "request:\n"
            "  timeout_seconds: 3\n",
            encoding="utf-8"
        )

        with patch('ai_credit_watch.cli.main.BalanceClient') as mock_class:
            mock_class.return_value = mock_client
            result = runner.invoke(app, ["balance", "--config", str(config_path)])

        assert result.exit_code == EXIT_CODE_OK
        mock_class.assert_called_once_with(timeout=3.0)

    def test_balance_invalid_config(self, mock_client, tmp_path):
        config_path = tmp_path / "watch.yaml"
        config_path.write_text("unknown: 1\n", encoding="utf-8")

        result = runner.invoke(app, ["balance", "--config", str(config_path)])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown configuration keys" in result.output


class TestWatchCommand:
    """Test the watch command."""

    def test_watch_serves_second_read_from_cache(self, mock_client):
        result = runner.invoke(app, ["watch", *CREDENTIAL_ARGS, "--count", "2", "--interval", "0"])

        assert result.exit_code == EXIT_CODE_OK
        assert "Loading balance..." in result.output
        assert result.output.count("$5.00 credits available") == 2
        assert mock_client.fetch.await_count == 1

    def test_watch_rejects_bad_count(self, mock_client):
        result = runner.invoke(app, ["watch", *CREDENTIAL_ARGS, "--count", "0"])

        assert result.exit_code == EXIT_CODE_FAIL


class TestManageCommand:
    """Test the manage command."""

    def test_manage_opens_url(self):
        with patch('ai_credit_watch.cli.main.typer.launch') as mock_launch:
            result = runner.invoke(app, ["manage", "--endpoint", "https://api.beta.myninja.ai/v1"])

        assert result.exit_code == EXIT_CODE_OK
        mock_launch.assert_called_once_with("https://betamyninja.ai/add-on/credits?from_SN=true")

    def test_manage_without_endpoint(self):
        with patch('ai_credit_watch.cli.main.typer.launch') as mock_launch:
            result = runner.invoke(app, ["manage"])

        assert result.exit_code == EXIT_CODE_FAIL
        mock_launch.assert_not_called()


def test_no_command_prints_hint():
    result = runner.invoke(app, [])
    assert "AI Credit Watch" in result.output


class TestFeatureFlagCommands:
    """Test the default-model and flag commands."""

    def _write_flags(self, tmp_path) -> str:
        config_path = tmp_path / "watch.yaml"
        config_path.write_text(
            "feature_flags:\n"
            "  model-settings:\n"
            "    - value: model-a\n"
            "      label: Model A\n"
            "      description: Fast\n"
            "    - value: model-b\n"
            "      label: Model B\n"
            "      description: Smart\n"
            "      default: true\n"
            "  beta-banner:\n"
            "    enabled: true\n",
            encoding="utf-8"
        )
        return str(config_path)

    def test_default_model_from_config(self, tmp_path):
        result = runner.invoke(app, ["default-model", "--config", self._write_flags(tmp_path)])

        assert result.exit_code == EXIT_CODE_OK
        assert result.output.strip() == "model-b"

    def test_default_model_without_flags_uses_fallback(self):
        result = runner.invoke(app, ["default-model"])

        assert result.exit_code == EXIT_CODE_OK
        assert "zai:glm-4-6-cerebras" in result.output

    def test_flag_prints_payload_json(self, tmp_path):
        result = runner.invoke(app, ["flag", "beta-banner", "--config", self._write_flags(tmp_path)])

        assert result.exit_code == EXIT_CODE_OK
        assert '"enabled": true' in result.output

    def test_unknown_flag_fails(self, tmp_path):
        result = runner.invoke(app, ["flag", "missing", "--config", self._write_flags(tmp_path)])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "No payload for flag missing" in result.output
