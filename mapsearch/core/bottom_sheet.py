from __future__ import annotations

from mapsearch.core.models import BottomSheetState, SheetMode


COLLAPSED_HEIGHT_PX = 200.0
TOP_GAP_PX = 100.0
HALF_RATIO = 0.5
EXPANDED_RATIO = 0.9
COLLAPSE_BELOW_RATIO = 0.3
HALF_BELOW_RATIO = 0.7


def clamp_height(height_px: float, viewport_height: float) -> float:
    return max(COLLAPSED_HEIGHT_PX, min(viewport_height - TOP_GAP_PX, height_px))


def drag_height(start_height: float, start_y: float, current_y: float, viewport_height: float) -> float:
    # Dragging up (smaller y) grows the sheet.
    return clamp_height(start_height + (start_y - current_y), viewport_height)


def height_for_mode(mode: SheetMode, viewport_height: float) -> float:
    if mode is SheetMode.COLLAPSED:
        return COLLAPSED_HEIGHT_PX
    if mode is SheetMode.HALF:
        return viewport_height * HALF_RATIO
    return viewport_height * EXPANDED_RATIO


def snap_mode(height_px: float, viewport_height: float) -> SheetMode:
    if height_px < viewport_height * COLLAPSE_BELOW_RATIO:
        return SheetMode.COLLAPSED
    if height_px < viewport_height * HALF_BELOW_RATIO:
        return SheetMode.HALF
    return SheetMode.EXPANDED


def release(height_px: float, viewport_height: float) -> BottomSheetState:
    mode = snap_mode(height_px, viewport_height)
    return BottomSheetState(height_px=height_for_mode(mode, viewport_height), mode=mode)


def collapsed() -> BottomSheetState:
    return BottomSheetState(height_px=COLLAPSED_HEIGHT_PX, mode=SheetMode.COLLAPSED)


class BottomSheetDrag:
    """Touch-drag gesture over the pure transition functions above."""

    def __init__(self, viewport_height: float, state: BottomSheetState | None = None) -> None:
        self.viewport_height = viewport_height
        self.state = state or collapsed()
        self.dragging = False
        self._start_y = 0.0
        self._start_height = self.state.height_px

    def start(self, y: float) -> None:
        self.dragging = True
        self._start_y = y
        self._start_height = self.state.height_px

    def move(self, y: float) -> BottomSheetState:
        if not self.dragging:
            return self.state
        height = drag_height(self._start_height, self._start_y, y, self.viewport_height)
        # Mode stays put until release; only the height follows the finger.
        self.state = BottomSheetState(height_px=height, mode=self.state.mode)
        return self.state

    def end(self) -> BottomSheetState:
        if not self.dragging:
            return self.state
        self.dragging = False
        self.state = release(self.state.height_px, self.viewport_height)
        return self.state

    def resize(self, viewport_height: float) -> BottomSheetState:
        self.viewport_height = viewport_height
        if not self.dragging:
            self.state = BottomSheetState(
                height_px=height_for_mode(self.state.mode, viewport_height),
                mode=self.state.mode,
            )
        return self.state
