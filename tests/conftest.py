import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_DIR = PROJECT_ROOT / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

from secure_vault.crypto.kdf import KDF_MEM_MIN_KIB, KdfParams, resolve_kdf_params  # noqa: E402


@pytest.fixture
def fast_kdf() -> KdfParams:
    """Cheapest parameters the policy accepts, to keep Argon2 quick in tests."""
    return resolve_kdf_params(mem_cost_kib=KDF_MEM_MIN_KIB)
