from typing import FrozenSet, Iterable, Set

KEYS = ("up", "down", "left", "right")

BROWSER_KEYS = {
    "ArrowUp": "up",
    "ArrowDown": "down",
    "ArrowLeft": "left",
    "ArrowRight": "right",
}


def interpret_browser_keys(browser_keys: Iterable[str]) -> Set[str]:
    """Map raw key names from the host UI onto the program's key vocabulary."""
    return {BROWSER_KEYS[key] for key in browser_keys if key in BROWSER_KEYS}


class InputState:
    """Keys currently held down, as last reported by the host UI."""

    def __init__(self):
        self._pressed: Set[str] = set()

    def update(self, new_pressed: Iterable[str]) -> bool:
        """Replace the held keys. Returns True when anything changed."""
        new_pressed = {key for key in new_pressed if key in KEYS}
        dirty = new_pressed != self._pressed
        self._pressed = new_pressed
        return dirty

    @property
    def pressed(self) -> FrozenSet[str]:
        return frozenset(self._pressed)
