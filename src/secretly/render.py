"""Output rendering for secret metadata: JSON, YAML or a text table."""

import io
import json

import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

FORMATS = ("json", "yaml", "table")
TABLE_HEADERS = ("name", "value", "description", "frozen", "created_at", "updated_at", "expires_at")
# Wide enough that long descriptions never wrap inside a cell
TABLE_WIDTH = 10_000


def render_json(data):
    return json.dumps(data, indent=2, ensure_ascii=False)


def render_yaml(data):
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip("\n")


def render_table(secrets):
    """Render secrets as a box-drawn table, one row per secret."""
    rows = [secret.table_row() for secret in secrets]
    headers = list(rows[0]) if rows else list(TABLE_HEADERS)

    table = Table(box=box.SQUARE, show_lines=True)
    for header in headers:
        table.add_column(header, no_wrap=True)
    for row in rows:
        # Text keeps user input like "[bold]" from being read as markup
        table.add_row(*(Text(row[h]) for h in headers))

    buffer = io.StringIO()
    console = Console(file=buffer, width=TABLE_WIDTH, color_system=None, highlight=False)
    console.print(table)
    return buffer.getvalue().rstrip("\n")


def render_secrets(secrets, fmt="json"):
    """Render a list of secrets."""
    if fmt == "table":
        return render_table(secrets)
    data = [secret.to_dict() for secret in secrets]
    return render_yaml(data) if fmt == "yaml" else render_json(data)


def render_secret(secret, fmt="json"):
    """Render a single secret."""
    if fmt == "table":
        return render_table([secret])
    data = secret.to_dict()
    return render_yaml(data) if fmt == "yaml" else render_json(data)
