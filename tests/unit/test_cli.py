from unittest.mock import patch

from click.testing import CliRunner

from carwash import cli


class TestCli:
    def test_help_lists_commands(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Run, migrate and seed the car wash booking service." in result.output
        for command in ("app", "db", "slots", "test", "lint"):
            assert command in result.output

    def test_migrate_runs_alembic(self) -> None:
        with patch("carwash.subprocess.call", return_value=0) as call:
            result = CliRunner().invoke(cli, ["db", "migrate"])

        assert result.exit_code == 0
        call.assert_called_once_with(["uv", "run", "alembic", "upgrade", "head"])
        assert "Booking schema: upgrade to head" in result.output
        assert "done: schema is current" in result.output

    def test_failed_command_exits_with_its_code(self) -> None:
        with patch("carwash.subprocess.call", return_value=3):
            result = CliRunner().invoke(cli, ["db", "up"])

        assert result.exit_code == 3
        assert "done:" not in result.output

    def test_generate_rejects_bad_date(self) -> None:
        result = CliRunner().invoke(cli, ["slots", "generate", "2030-13-01"])

        assert result.exit_code == 2
        assert "expected YYYY-MM-DD" in result.output
