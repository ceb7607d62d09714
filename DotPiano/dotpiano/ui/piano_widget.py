from __future__ import annotations

from dataclasses import dataclass

from PySide6.QtCore import QEvent, QPointF, QRectF, QSize, Qt, Signal
from PySide6.QtGui import QColor, QFont, QMouseEvent, QPaintEvent, QPainter, QPen, QTouchEvent
from PySide6.QtWidgets import QSizePolicy, QWidget

from dotpiano.core.key_arena import KeyHandle
from dotpiano.core.layout import KeySpec
from dotpiano.core.theme import ThemePalette
from dotpiano.services.viewport import TierView

MOUSE_POINTER_ID = 0
TOUCH_POINTER_BASE = 1
DEFAULT_ROW_HEIGHT = 56


@dataclass(slots=True)
class _KeyRect:
    handle: KeyHandle
    spec: KeySpec
    rect: QRectF


class TierKeyboardWidget(QWidget):
    """One keyboard tier: a row of black keys above a row of white keys.

    The widget only knows key handles. Sounding state is pushed in from the
    arena, and pointer activity is reported in global coordinates so that a
    gesture can glide from one tier into another.
    """

    pointerPressed = Signal(int, object)
    pointerMoved = Signal(int, float, float)
    pointerReleased = Signal(int)
    pointerCanceled = Signal(int)

    def __init__(self, slot: int, theme: ThemePalette, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.slot = int(slot)
        self._theme = theme
        self._view: TierView | None = None
        self._row_height: int | None = None
        self._white_rects: list[_KeyRect] = []
        self._black_rects: list[_KeyRect] = []
        self._rect_by_handle: dict[KeyHandle, QRectF] = {}
        self._sounding: set[KeyHandle] = set()
        self._mouse_pressed = False
        self._touch_ids: set[int] = set()
        self.setAttribute(Qt.WidgetAttribute.WA_AcceptTouchEvents, True)
        self.setAttribute(Qt.WidgetAttribute.WA_OpaquePaintEvent, True)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)

    def sizeHint(self) -> QSize:
        row = self._row_height or DEFAULT_ROW_HEIGHT
        return QSize(480, row * 2)

    def minimumSizeHint(self) -> QSize:
        return QSize(120, 40)

    def set_view(self, view: TierView | None) -> None:
        self._view = view
        self._sounding.clear()
        self._mouse_pressed = False
        self._touch_ids.clear()
        self.setVisible(view is not None and not view.hidden)
        self._rebuild_geometry()
        self.update()

    def set_row_height(self, height: int | None) -> None:
        self._row_height = int(height) if height else None
        if self._row_height:
            self.setFixedHeight(self._row_height * 2)
        else:
            self.setMinimumHeight(0)
            self.setMaximumHeight(16777215)
        self.updateGeometry()

    def set_sounding(self, handles: tuple[KeyHandle, ...], sounding: bool) -> None:
        for handle in handles:
            rect = self._rect_by_handle.get(handle)
            if rect is None:
                continue
            if sounding:
                self._sounding.add(handle)
            else:
                self._sounding.discard(handle)
            self.update(rect.toRect().adjusted(-2, -2, 2, 2))

    def handle_at(self, point: QPointF) -> KeyHandle | None:
        for item in self._black_rects:
            if item.rect.contains(point):
                return item.handle
        for item in self._white_rects:
            if item.rect.contains(point):
                return item.handle
        return None

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self._rebuild_geometry()

    def _rebuild_geometry(self) -> None:
        self._white_rects.clear()
        self._black_rects.clear()
        self._rect_by_handle.clear()
        view = self._view
        if view is None or view.layout is None or not view.layout.white_keys:
            return
        layout = view.layout

        width = float(max(1, self.width()))
        row_h = float(max(1, self.height())) / 2.0
        unit = width / float(max(1, layout.grid_units))
        gap = 1.0

        for index, (handle, spec) in enumerate(zip(view.white_handles, layout.white_keys)):
            rect = QRectF((index * 2) * unit + gap, row_h + gap, (2 * unit) - (2 * gap), row_h - (2 * gap))
            self._white_rects.append(_KeyRect(handle=handle, spec=spec, rect=rect))
            self._rect_by_handle[handle] = rect

        for (start, weight), handle, spec in zip(layout.black_key_spans(), view.black_handles, layout.black_keys):
            inset = gap if spec.wide else unit * 0.25
            rect = QRectF(start * unit + inset, gap, (weight * unit) - (2 * inset), row_h - (2 * gap))
            self._black_rects.append(_KeyRect(handle=handle, spec=spec, rect=rect))
            self._rect_by_handle[handle] = rect

    def _fill_color(self, item: _KeyRect) -> QColor:
        sounding = item.handle in self._sounding
        if item.spec.black:
            return QColor(self._theme.black_key_sounding if sounding else self._theme.black_key)
        if sounding:
            return QColor(self._theme.white_key_sounding)
        return QColor(self._theme.edge_c_key if item.spec.edge_c else self._theme.white_key)

    def paintEvent(self, event: QPaintEvent) -> None:
        clip_f = QRectF(event.rect())
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing, False)
        painter.fillRect(event.rect(), QColor(self._theme.panel_bg))

        outline_pen = QPen(QColor(self._theme.border), 1)
        for item in self._white_rects + self._black_rects:
            if not item.rect.intersects(clip_f):
                continue
            painter.fillRect(item.rect, self._fill_color(item))
            painter.setPen(outline_pen)
            painter.drawRect(item.rect)
            if item.spec.show_label:
                self._draw_label(painter, item)
        painter.end()

    def _draw_label(self, painter: QPainter, item: _KeyRect) -> None:
        color = self._theme.label_on_black if item.spec.black else self._theme.label_on_white
        painter.setPen(QColor(color))
        size = max(6, min(11, int(item.rect.height() / 4)))
        painter.setFont(QFont("Segoe UI", size, QFont.Weight.Bold))
        painter.drawText(
            item.rect.adjusted(0, 0, 0, -4),
            Qt.AlignHCenter | Qt.AlignBottom,
            item.spec.label,
        )

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.LeftButton:
            return super().mousePressEvent(event)
        self._mouse_pressed = True
        self.pointerPressed.emit(MOUSE_POINTER_ID, self.handle_at(event.position()))
        event.accept()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        if self._mouse_pressed:
            point = event.globalPosition()
            self.pointerMoved.emit(MOUSE_POINTER_ID, point.x(), point.y())
        event.accept()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        if event.button() != Qt.LeftButton:
            return super().mouseReleaseEvent(event)
        if self._mouse_pressed:
            self._mouse_pressed = False
            self.pointerReleased.emit(MOUSE_POINTER_ID)
        event.accept()

    def event(self, event: QEvent) -> bool:
        event_type = event.type()
        if event_type in (QEvent.Type.TouchBegin, QEvent.Type.TouchUpdate, QEvent.Type.TouchEnd):
            self._handle_touch(event)
            return True
        if event_type == QEvent.Type.TouchCancel:
            for touch_id in sorted(self._touch_ids):
                self.pointerCanceled.emit(touch_id)
            self._touch_ids.clear()
            event.accept()
            return True
        return super().event(event)

    def _handle_touch(self, event: QTouchEvent) -> None:
        for point in event.points():
            pointer_id = TOUCH_POINTER_BASE + int(point.id())
            state = point.state()
            if state == point.State.Pressed:
                self._touch_ids.add(pointer_id)
                self.pointerPressed.emit(pointer_id, self.handle_at(point.position()))
            elif state == point.State.Updated:
                if pointer_id in self._touch_ids:
                    global_pos = point.globalPosition()
                    self.pointerMoved.emit(pointer_id, global_pos.x(), global_pos.y())
            elif state == point.State.Released:
                if pointer_id in self._touch_ids:
                    self._touch_ids.discard(pointer_id)
                    self.pointerReleased.emit(pointer_id)
        event.accept()
