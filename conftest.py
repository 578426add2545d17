import shutil
from pathlib import Path

import pytest

from soup_sleuth.storage import Storage

TEST_DATA_DIR = Path("data-tests")
PRESETS_DIR = Path(__file__).parent / "presets"


@pytest.fixture
def storage() -> Storage:
    """Wipe and re-init data-tests/ for every test that asks for storage."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    return Storage(TEST_DATA_DIR, presets_dir=PRESETS_DIR)
    # data-tests/ is left around after tests for inspection; CI can ignore it
