"""Tests for the CLI entry point."""

import logging
import subprocess
from unittest.mock import MagicMock, patch

from click.testing import CliRunner
from rich.logging import RichHandler

from doclens_cli.cli import configure_logging, main
from doclens_core.delivery import DeliveryReport, DeliveryState
from doclens_core.models import RepositoryContext
from doclens_core.result import Err, ErrorKind
from doclens_core.runner import RunSummary
from doclens_core.sweeper import SweepReport


def _make_config(github_token="tok", model="anthropic", anthropic_key="ant", openai_key=None):
    return {
        "github_token": github_token,
        "model": model,
        "anthropic_api_key": anthropic_key,
        "openai_api_key": openai_key,
        "dialect": "american_english",
        "tone": "formal",
        "style_guide": "ap",
        "exclude": [],
        "retention_days": 7,
        "rewrite_branch_prefix": "doclens-rewrite-",
        "max_retries": 3,
    }


def _patch_common(mocker, config=None, token="tok"):
    """Patch load_config, resolve_github_token and logging setup for most tests."""
    cfg = config or _make_config()
    load = mocker.patch("doclens_core.config.load_config", return_value=cfg)
    mocker.patch("doclens_cli.auth.resolve_github_token", return_value=token)
    mocker.patch("doclens_cli.cli.configure_logging")
    return cfg, load


class TestCLIValidation:
    def test_missing_github_token(self, mocker):
        _patch_common(mocker, config=_make_config(github_token=None), token=None)

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "token" in result.output.lower() or "GITHUB_TOKEN" in result.output

    def test_missing_anthropic_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="anthropic", anthropic_key=None))

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "ANTHROPIC_API_KEY" in result.output

    def test_missing_openai_key(self, mocker):
        _patch_common(mocker, config=_make_config(model="openai", anthropic_key=None, openai_key=None))

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "1"])
        assert result.exit_code != 0
        assert "OPENAI_API_KEY" in result.output

    def test_unknown_model_rejected(self, mocker):
        _patch_common(mocker)

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "1", "--model", "llama"])
        assert result.exit_code == 2


class TestCLIAnalyze:
    def test_calls_run_analysis_with_correct_args(self, mocker):
        _patch_common(mocker)
        repo_obj = MagicMock()
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=repo_obj)
        mock_run = mocker.patch("doclens_cli.commands.analyze.run_analysis", return_value=None)

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "42"])

        assert result.exit_code == 0
        mock_run.assert_called_once()
        kwargs = mock_run.call_args.kwargs
        assert kwargs["repo"] == "owner/repo"
        assert kwargs["pr_number"] == 42
        assert kwargs["shadow"] is False
        assert kwargs["repo_obj"] is repo_obj
        assert kwargs["config"]["github_token"] == "tok"

    def test_shadow_flag_passed_through(self, mocker):
        _patch_common(mocker)
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=MagicMock())
        mock_run = mocker.patch("doclens_cli.commands.analyze.run_analysis", return_value=None)

        CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "1", "--shadow"])

        assert mock_run.call_args.kwargs["shadow"] is True

    def test_options_become_config_overrides(self, mocker):
        _, load = _patch_common(mocker)
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=MagicMock())
        mocker.patch("doclens_cli.commands.analyze.run_analysis", return_value=None)

        CliRunner().invoke(
            main,
            [
                "--config",
                "custom.yml",
                "analyze",
                "--repo",
                "owner/repo",
                "--pr",
                "1",
                "--tone",
                "informal",
                "--no-rewrite",
                "--no-cleanup",
                "--no-summary",
            ],
        )

        args, kwargs = load.call_args
        assert args[0] == "custom.yml"
        overrides = kwargs["cli_overrides"]
        assert overrides["tone"] == "informal"
        assert overrides["dialect"] is None
        assert overrides["rewrite"] is False
        assert overrides["cleanup"] is False
        assert overrides["summary_comment"] is False
        assert "suggestions" not in overrides

    def test_missing_pull_request_is_reported(self, mocker):
        _patch_common(mocker)
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=MagicMock())
        mocker.patch(
            "doclens_cli.commands.analyze.run_analysis",
            side_effect=ValueError("PR #9 not found in owner/repo."),
        )

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "9"])

        assert result.exit_code != 0
        assert "PR #9 not found" in result.output

    def test_summary_is_reported(self, mocker):
        _patch_common(mocker)
        summary = RunSummary(
            repo="owner/repo",
            pr_number=1,
            head_sha="a" * 40,
            analyzed_files=["docs/a.md", "docs/b.md"],
            skipped_files=["src/app.py"],
            delivery=DeliveryReport(state=DeliveryState.PARTIAL_FAILURE),
            comment=Err(ErrorKind.PERMISSION_DENIED, "forbidden", "comment on #1", 403),
        )
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=MagicMock())
        mocker.patch("doclens_cli.commands.analyze.run_analysis", return_value=summary)

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo", "--pr", "1"])

        assert result.exit_code == 0
        assert "2 document(s) analyzed" in result.output
        assert "1 skipped" in result.output
        assert "could not be posted" in result.output
        assert "Summary comment not posted" in result.output


class TestCLIInteractive:
    def test_lists_open_prs(self, mocker):
        _patch_common(mocker)
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=MagicMock())
        mock_pr = MagicMock()
        mock_pr.number = 7
        mock_pr.title = "Rewrite the install guide"
        mocker.patch("doclens_cli.commands.analyze.get_pull_requests", return_value=[mock_pr])
        mock_run = mocker.patch("doclens_cli.commands.analyze.run_analysis", return_value=None)

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo"], input="7\n")

        assert "#7" in result.output
        assert "Rewrite the install guide" in result.output
        assert mock_run.call_args.kwargs["pr_number"] == 7

    def test_no_open_prs_exits_early(self, mocker):
        _patch_common(mocker)
        mocker.patch("doclens_cli.commands.analyze.get_repo", return_value=MagicMock())
        mocker.patch("doclens_cli.commands.analyze.get_pull_requests", return_value=[])
        mock_run = mocker.patch("doclens_cli.commands.analyze.run_analysis", return_value=None)

        result = CliRunner().invoke(main, ["analyze", "--repo", "owner/repo"])

        assert "No open pull requests" in result.output
        mock_run.assert_not_called()


# ---------------------------------------------------------------------------
# sweep command
# ---------------------------------------------------------------------------


class TestSweepCommand:
    def test_sweeps_with_configured_retention(self, mocker):
        cfg, load = _patch_common(mocker)
        cfg["retention_days"] = 3
        host_cls = mocker.patch("doclens_cli.commands.sweep.GitHubHost")
        sweep = mocker.patch(
            "doclens_cli.commands.sweep.sweep_rewrite_branches",
            return_value=SweepReport(deleted=["doclens-rewrite-1"], kept=["doclens-rewrite-2"]),
        )

        result = CliRunner().invoke(main, ["sweep", "--repo", "acme/docs", "--days", "3"])

        assert result.exit_code == 0
        assert load.call_args.kwargs["cli_overrides"] == {"retention_days": 3}
        host_cls.from_token.assert_called_once_with("tok", 3)
        args, kwargs = sweep.call_args
        assert args == (host_cls.from_token.return_value, RepositoryContext(owner="acme", repo="docs"))
        assert kwargs == {"retention_days": 3, "prefix": "doclens-rewrite-"}
        assert "doclens-rewrite-1" in result.output
        assert "1 deleted, 1 kept, 0 failed" in result.output

    def test_malformed_repo_rejected(self, mocker):
        _patch_common(mocker)
        sweep = mocker.patch("doclens_cli.commands.sweep.sweep_rewrite_branches")

        result = CliRunner().invoke(main, ["sweep", "--repo", "acme"])

        assert result.exit_code != 0
        sweep.assert_not_called()

    def test_missing_token(self, mocker):
        _patch_common(mocker, token=None)

        result = CliRunner().invoke(main, ["sweep", "--repo", "acme/docs"])

        assert result.exit_code != 0
        assert "token" in result.output.lower()


# ---------------------------------------------------------------------------
# logging setup
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_attaches_single_rich_handler(self):
        loggers = [logging.getLogger(name) for name in ("doclens_core", "doclens_cli")]
        saved = [(lg.level, lg.propagate, list(lg.handlers)) for lg in loggers]
        try:
            configure_logging(verbose=False)
            configure_logging(verbose=True)
            for lg in loggers:
                assert len(lg.handlers) == 1
                assert isinstance(lg.handlers[0], RichHandler)
                assert lg.level == logging.DEBUG
        finally:
            for lg, (level, propagate, handlers) in zip(loggers, saved):
                lg.setLevel(level)
                lg.propagate = propagate
                lg.handlers[:] = handlers


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from doclens_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self, monkeypatch):
        from doclens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self, monkeypatch):
        from doclens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_times_out(self, monkeypatch):
        from doclens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            result = resolve_github_token()
        assert result is None

    def test_returns_none_when_gh_returns_error(self, monkeypatch):
        from doclens_cli.auth import resolve_github_token

        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            result = resolve_github_token()
        assert result is None
