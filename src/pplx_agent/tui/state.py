"""Per-prompt draw state for the boxed input."""

from dataclasses import dataclass


@dataclass
class InputDrawState:
    """What the renderer has drawn for the current prompt.

    Created fresh for every loop iteration and discarded after submission.
    """

    box_top_drawn: bool = False
    box_bottom_drawn: bool = False
    dropdown_visible: bool = False
    selected_index: int = 0
    scroll_offset: int = 0

    def hide_dropdown(self) -> None:
        self.dropdown_visible = False
        self.selected_index = 0
        self.scroll_offset = 0

    def move_selection(self, direction: int, max_index: int) -> None:
        """Move the dropdown selection up or down.

        The selection is clamped to [0, max_index]. If max_index < 0 (no
        matches), the selection stays at 0.
        """
        if max_index < 0:
            self.selected_index = 0
            return
        self.selected_index = max(0, min(self.selected_index + direction, max_index))

    def scroll_to_selection(self, window: int) -> None:
        """Adjust the scroll offset so the selection is inside the visible window."""
        if self.selected_index < self.scroll_offset:
            self.scroll_offset = self.selected_index
        elif self.selected_index >= self.scroll_offset + window:
            self.scroll_offset = self.selected_index - window + 1
