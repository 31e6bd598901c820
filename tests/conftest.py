"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages.
"""

import logging
import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

# Insert local src directory at the beginning of sys.path
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

# Force reimport of mysqlinstr modules if already imported
for module_name in list(sys.modules.keys()):
    if module_name.startswith("mysqlinstr"):
        del sys.modules[module_name]


@pytest.fixture(autouse=True)
def _isolated_config(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Keep user config and MYSQLINSTR__ env vars out of every test."""
    import mysqlinstr.config.loader as loader

    monkeypatch.setattr(loader, "GLOBAL_CONFIG_PATH", tmp_path / "no-global-config.yaml")
    for key in list(os.environ):
        if key.startswith("MYSQLINSTR__"):
            monkeypatch.delenv(key)
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()
