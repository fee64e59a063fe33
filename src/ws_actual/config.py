"""Configuration loading, writing, and project initialization.

Reads TOML config files using stdlib ``tomllib`` and writes them using
``tomli_w``.  Depends only on ``models.py``.
"""

from __future__ import annotations

import re
import sys
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore[no-redef]

import tomli_w

from ws_actual.models import AccountMapping, AppConfig

CONFIG_FILENAME = "config.toml"

_DEFAULT_CONFIG_TOML = """\
# ws-actual configuration

[server]
url = "http://localhost:5007"    # actual-http-api server
budget_sync_id = ""              # Settings > Advanced > Sync ID in the ledger
api_key_env = "ACTUAL_API_KEY"   # Name of env var containing the API key

[import]
brand_payee = "WealthSimple"     # Payee for referrals, interest, bonuses, cash back

# Account mappings, first match wins.  ws_account_name is an exact name
# (case-insensitive) or a regex when it contains regex characters.
# Example:
# [[accounts]]
# ws_account_name = "Chequing"
# actual_account_id = "00000000-0000-0000-0000-000000000000"
"""

# Only a table header at the start of a line; commented examples do not count.
_ACCOUNTS_TABLE_RE = re.compile(r"^\[\[accounts\]\]", re.MULTILINE)

# Directories that ``initialize`` creates.
_INIT_DIRS = ["input"]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(root: Path) -> AppConfig:
    """Load ``config.toml`` from *root* and return an :class:`AppConfig`.

    Args:
        root: Project root directory containing ``config.toml``.

    Returns:
        A fully-populated :class:`AppConfig` instance.

    Raises:
        FileNotFoundError: If ``config.toml`` does not exist.
        ValueError: If an ``[[accounts]]`` entry is missing a key.
    """
    data = _read_toml(root / CONFIG_FILENAME)

    server = data.get("server", {})
    import_section = data.get("import", {})

    accounts = []
    for index, entry in enumerate(data.get("accounts", []), start=1):
        try:
            accounts.append(
                AccountMapping(
                    ws_account_name=entry["ws_account_name"],
                    actual_account_id=entry["actual_account_id"],
                )
            )
        except KeyError as exc:
            raise ValueError(f"[[accounts]] entry {index} is missing {exc}") from exc

    return AppConfig(
        server_url=server.get("url") or None,
        budget_sync_id=server.get("budget_sync_id") or None,
        api_key_env=server.get("api_key_env", "ACTUAL_API_KEY"),
        brand_payee=import_section.get("brand_payee", "WealthSimple"),
        accounts=accounts,
    )


def save_account_mappings(root: Path, mappings: list[AccountMapping]) -> None:
    """Replace the ``[[accounts]]`` tables of ``config.toml`` with *mappings*.

    Everything before the first ``[[accounts]]`` table (the server and
    import sections and their comments) is preserved verbatim.

    Args:
        root: Project root directory containing ``config.toml``.
        mappings: The complete list of mappings to write, in match order.
    """
    config_path = root / CONFIG_FILENAME
    original_text = config_path.read_text(encoding="utf-8")

    match = _ACCOUNTS_TABLE_RE.search(original_text)
    if match is None:
        prefix = original_text.rstrip() + "\n\n"
    else:
        prefix = original_text[: match.start()]

    # One [[accounts]] header per mapping; tomli_w writes only the key-value pairs.
    tables = [
        "[[accounts]]\n"
        + tomli_w.dumps(
            {"ws_account_name": m.ws_account_name, "actual_account_id": m.actual_account_id}
        )
        for m in mappings
    ]

    config_path.write_text(prefix + "\n".join(tables), encoding="utf-8")


def initialize(target_dir: Path) -> None:
    """Create the standard directory structure and a default config file.

    Idempotent: existing directories are left alone and an existing
    ``config.toml`` is **not** overwritten.

    Args:
        target_dir: The directory in which to create the project structure.
    """
    target_dir = Path(target_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    for d in _INIT_DIRS:
        (target_dir / d).mkdir(parents=True, exist_ok=True)

    _write_if_missing(target_dir / CONFIG_FILENAME, _DEFAULT_CONFIG_TOML)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _read_toml(path: Path) -> dict:
    """Read and parse a TOML file."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _write_if_missing(path: Path, content: str) -> None:
    """Write *content* to *path* only if the file does not already exist."""
    if not path.exists():
        path.write_text(content, encoding="utf-8")
