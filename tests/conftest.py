import pytest

from soup_sleuth.models import Puzzle

from .helpers import make_puzzle


@pytest.fixture
def puzzle() -> Puzzle:
    return make_puzzle()


@pytest.fixture
def albatross(storage) -> Puzzle:
    """The bundled Albatross Soup preset."""
    puzzle = storage.get_puzzle("albatross-soup")
    assert puzzle is not None
    return puzzle
