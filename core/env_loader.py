"""
core/env_loader.py
Minimal .env file loader.
Loads KEY=VALUE pairs into os.environ at startup so DASHD_* overrides
can live next to the install.
"""

import os


def load_dotenv(path: str = ".env") -> int:
    """
    Load KEY=VALUE pairs from a .env file into os.environ.
    - Skips blank lines and comments (lines starting with #)
    - Accepts an optional leading "export "
    - Strips surrounding quotes (' or ") from values
    - Uses os.environ.setdefault so real env vars take precedence
    Returns the number of keys read.
    """
    if not os.path.exists(path):
        return 0

    count = 0
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            if line.startswith("export "):
                line = line[len("export "):]
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                value = value[1:-1]
            os.environ.setdefault(key, value)
            count += 1
    return count
