"""System clipboard access via the platform's copy tool."""

import os
import shutil
import subprocess
import sys

from .errors import ClipboardUnavailable


def clipboard_command():
    """Pick the clipboard tool for this environment.

    Raises:
        ClipboardUnavailable: If no display or tool is available

    """
    if sys.platform == "darwin":
        return ["pbcopy"]
    if sys.platform == "win32":
        return ["clip"]

    if os.path.exists("/proc/version"):
        with open("/proc/version") as f:
            version = f.read().lower()
        if "microsoft" in version or "wsl" in version:
            return ["clip.exe"]

    if os.environ.get("WAYLAND_DISPLAY"):
        return ["wl-copy"]
    if os.environ.get("DISPLAY"):
        return ["xclip", "-selection", "clipboard"]

    raise ClipboardUnavailable("No clipboard available (headless session)")


def copy_to_clipboard(text):
    """Copy text to the clipboard. The text never reaches stdout or logs."""
    cmd = clipboard_command()

    if shutil.which(cmd[0]) is None:
        raise ClipboardUnavailable(f"Clipboard tool not found: {cmd[0]}")

    try:
        proc = subprocess.run(cmd, input=text.encode('utf-8'), capture_output=True)
    except (FileNotFoundError, PermissionError) as e:
        raise ClipboardUnavailable(f"Clipboard tool failed to start: {cmd[0]}") from e

    if proc.returncode != 0:
        stderr = proc.stderr.decode('utf-8', errors='replace').strip()
        raise ClipboardUnavailable(f"Clipboard tool {cmd[0]} failed: {stderr or proc.returncode}")
