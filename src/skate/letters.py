"""Penalty letters. A player who collects all of S-K-A-T-E is out."""

SKATE_WORD = "SKATE"
MAX_LETTERS = len(SKATE_WORD)


def spell(count: int) -> str:
    """Letters collected so far, ex. 2 -> 'SK'."""
    if not 0 <= count <= MAX_LETTERS:
        raise ValueError(f"Letter count must be between 0 and {MAX_LETTERS}: {count}")
    return SKATE_WORD[:count]


def is_eliminated(count: int) -> bool:
    return count >= MAX_LETTERS
