"""
Tests for the offline CLI commands.
"""

from click.testing import CliRunner

from cca_bidder.cli.main import cli


class TestAlignCommand:
    """Tests for `cca-bidder align`."""

    def _align(self, *args):
        return CliRunner().invoke(
            cli, ["align", *args, "--floor", "1000", "--spacing", "100", "--cap", "10000"]
        )

    def test_rounds_down_on_midpoint(self):
        result = self._align("1050")

        assert result.exit_code == 0
        assert result.output.strip() == "1000"

    def test_rounds_up(self):
        assert self._align("1051").output.strip() == "1100"

    def test_clamps_to_cap(self):
        assert self._align("10500").output.strip() == "10000"

    def test_rejects_zero_spacing(self):
        result = CliRunner().invoke(
            cli, ["align", "1050", "--floor", "1000", "--spacing", "0", "--cap", "10000"]
        )

        assert result.exit_code != 0
        assert "--spacing" in result.output


class TestConfigErrors:
    """Tests for commands that need configuration."""

    def test_run_without_environment(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ETH_RPC_URL", raising=False)
        monkeypatch.delenv("PRIVATE_KEY", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("")

        result = CliRunner().invoke(cli, ["--env-file", str(env_file), "run"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
