from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


LOG_LEVEL = os.environ.get("MDPDF_LOG_LEVEL", "INFO").upper()

# Cap on simultaneous render-engine processes. 0 disables the limiter.
MAX_CONCURRENT_RENDERS = int(os.environ.get("MDPDF_MAX_CONCURRENT_RENDERS", "4"))

# Per-stage bounds for one render session, in seconds.
LAUNCH_TIMEOUT_SECONDS = float(os.environ.get("MDPDF_LAUNCH_TIMEOUT_SECONDS", "30"))
LOAD_TIMEOUT_SECONDS = float(os.environ.get("MDPDF_LOAD_TIMEOUT_SECONDS", "30"))
FONT_TIMEOUT_SECONDS = float(os.environ.get("MDPDF_FONT_TIMEOUT_SECONDS", "10"))
CAPTURE_TIMEOUT_SECONDS = float(os.environ.get("MDPDF_CAPTURE_TIMEOUT_SECONDS", "60"))
CLOSE_TIMEOUT_SECONDS = float(os.environ.get("MDPDF_CLOSE_TIMEOUT_SECONDS", "10"))

# Containers usually lack the user namespaces Chromium's sandbox needs,
# so the sandbox is opt-in.
CHROMIUM_SANDBOX = _env_bool("MDPDF_CHROMIUM_SANDBOX", False)

# Run the browser context offline: nothing outside the supplied HTML loads.
OFFLINE_RENDERING = _env_bool("MDPDF_OFFLINE", False)

# Pull Inter / Noto web fonts from Google Fonts. Without it only locally
# installed fonts are used.
REMOTE_FONTS = _env_bool("MDPDF_REMOTE_FONTS", not OFFLINE_RENDERING)

# Request limits.
MAX_MARKDOWN_CHARS = int(os.environ.get("MDPDF_MAX_MARKDOWN_CHARS", str(2_000_000)))

# How often the HTTP layer checks whether the client went away mid-render.
DISCONNECT_POLL_SECONDS = float(os.environ.get("MDPDF_DISCONNECT_POLL_SECONDS", "0.5"))

HOST = os.environ.get("HOST", "127.0.0.1")
PORT = int(os.environ.get("PORT", "8010"))
