import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "anthropic",
    "dialect": "american_english",
    "tone": "formal",
    "style_guide": "ap",
    "style_guide_file": None,  # None = built-in rules; set to a Markdown path to override
    "max_chars_per_file": 50000,  # larger documents are skipped, never truncated
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "docs/generated/", "CHANGELOG.md")
    "analyze_draft_prs": False,
    "suggestions": True,
    "rewrite": True,
    "cleanup": True,
    "summary_comment": True,
    "retention_days": 7,
    "rewrite_branch_prefix": "doclens-rewrite-",
    "max_comments_per_review": 100,
    "max_review_batches": 1,
    "max_workers": 4,
    "max_retries": 3,
}

BUILTIN_GUIDELINES_DIR = Path(__file__).parent / "guidelines"
_BUILTIN_DEFAULT = BUILTIN_GUIDELINES_DIR / "default.md"


def load_config(config_path: str = ".doclens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .doclens.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "exclude": list(DEFAULT_CONFIG["exclude"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def load_style_guide(config: dict) -> str:
    """
    Load the style rules handed to the scoring engine.

    If ``style_guide_file`` is set in config, loads from that path (relative to cwd).
    Otherwise falls back to the built-in default.
    """
    custom_path = config.get("style_guide_file")
    if custom_path:
        p = Path(custom_path)
        if not p.exists():
            raise FileNotFoundError(f"Style guide file not found: {custom_path}")
        return p.read_text()

    if _BUILTIN_DEFAULT.exists():
        return _BUILTIN_DEFAULT.read_text()

    raise FileNotFoundError("No style guide configured and built-in default is missing.")
