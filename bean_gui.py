"""PySide6 viewer for the bean counter (Galton box) machine."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PySide6.QtCore import QPointF, QRectF, Qt, QTimer, Signal
from PySide6.QtGui import QBrush, QColor, QFont, QPainter, QPen
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSlider,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from bean import make_beans
from bean_counter import BeanCounterLogic

STEP_INTERVAL_MS = 120
STEP_INTERVAL_MIN_MS = 10
STEP_INTERVAL_MAX_MS = 1000
DEFAULT_SLOTS = 10
DEFAULT_BEANS = 200
MAX_SLOTS = 40
MAX_BEANS = 100_000

PEG_COLOR = QColor("#d8ccb9")
BEAN_COLOR = QColor("#f2b84b")
BAR_COLOR = QColor("#7fb3d5")
TEXT_COLOR = QColor("#f7f3ea")


@dataclass(frozen=True)
class BoardSnapshot:
    slots: int
    in_flight: Tuple[Tuple[int, int], ...]
    slot_counts: Tuple[int, ...]

    @classmethod
    def from_logic(cls, logic: BeanCounterLogic) -> "BoardSnapshot":
        return cls(
            slots=logic.slot_count_total(),
            in_flight=tuple(logic.in_flight_positions()),
            slot_counts=logic.slot_counts(),
        )


class BoardWidget(QWidget):
    """Paints pegs, in-flight beans and the slot histogram from a snapshot."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.snapshot: Optional[BoardSnapshot] = None
        self.setMinimumSize(480, 420)

    def set_snapshot(self, snapshot: BoardSnapshot) -> None:
        self.snapshot = snapshot
        self.update()

    def peg_center(self, x: int, row: int) -> QPointF:
        snapshot = self.snapshot
        slots = snapshot.slots if snapshot is not None else 1
        board_height = self.height() * 0.6
        cell_w = self.width() / (slots + 1)
        cell_h = board_height / (slots + 1)
        left = (self.width() - row * cell_w) / 2.0
        return QPointF(left + x * cell_w, cell_h * (row + 1))

    def slot_rect(self, index: int, count: int, max_count: int) -> QRectF:
        slots = self.snapshot.slots if self.snapshot is not None else 1
        cell_w = self.width() / (slots + 1)
        left = (self.width() - (slots - 1) * cell_w) / 2.0 + index * cell_w - cell_w * 0.4
        floor = self.height() - 24.0
        area = self.height() * 0.4 - 40.0
        bar_h = 0.0 if max_count == 0 else area * count / max_count
        return QRectF(left, floor - bar_h, cell_w * 0.8, bar_h)

    def paintEvent(self, event) -> None:
        _ = event
        snapshot = self.snapshot
        if snapshot is None:
            return
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        cell_w = self.width() / (snapshot.slots + 1)
        peg_r = max(2.0, min(6.0, cell_w * 0.08))
        bean_r = max(3.0, min(12.0, cell_w * 0.2))

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(PEG_COLOR))
        for row in range(snapshot.slots):
            for x in range(row + 1):
                painter.drawEllipse(self.peg_center(x, row), peg_r, peg_r)

        painter.setBrush(QBrush(BEAN_COLOR))
        for x, row in snapshot.in_flight:
            center = self.peg_center(x, row)
            painter.drawEllipse(QPointF(center.x(), center.y() - bean_r - peg_r), bean_r, bean_r)

        max_count = max(snapshot.slot_counts, default=0)
        painter.setBrush(QBrush(BAR_COLOR))
        for index, count in enumerate(snapshot.slot_counts):
            painter.drawRect(self.slot_rect(index, count, max_count))

        painter.setPen(QPen(TEXT_COLOR))
        for index, count in enumerate(snapshot.slot_counts):
            rect = self.slot_rect(index, count, max_count)
            label_rect = QRectF(rect.left(), self.height() - 22.0, rect.width(), 20.0)
            painter.drawText(label_rect, Qt.AlignCenter, str(count))
        painter.end()


class BeanMachineWindow(QMainWindow):
    state_changed = Signal()

    def __init__(self) -> None:
        super().__init__()
        self.setWindowTitle("Bean Counter")
        self.setMinimumSize(760, 560)

        self.logic: Optional[BeanCounterLogic] = None
        self.ticks = 0
        self.running = False

        self.step_timer = QTimer(self)
        self.step_timer.setInterval(STEP_INTERVAL_MS)
        self.step_timer.timeout.connect(self.step_once)

        self._build_ui()
        self._apply_style()
        self.reset_machine()

    def _build_ui(self) -> None:
        root = QWidget(self)
        self.setCentralWidget(root)
        main_layout = QHBoxLayout(root)
        main_layout.setContentsMargins(18, 18, 18, 18)
        main_layout.setSpacing(16)

        self.board = BoardWidget()
        main_layout.addWidget(self.board, 1)

        side_widget = QFrame()
        side_widget.setObjectName("SidePanel")
        side_panel = QVBoxLayout(side_widget)
        side_panel.setContentsMargins(12, 12, 12, 12)

        side_panel.addWidget(QLabel("Slots"))
        self.slots_spin = QSpinBox()
        self.slots_spin.setRange(1, MAX_SLOTS)
        self.slots_spin.setValue(DEFAULT_SLOTS)
        side_panel.addWidget(self.slots_spin)

        side_panel.addWidget(QLabel("Beans"))
        self.beans_spin = QSpinBox()
        self.beans_spin.setRange(0, MAX_BEANS)
        self.beans_spin.setValue(DEFAULT_BEANS)
        side_panel.addWidget(self.beans_spin)

        side_panel.addWidget(QLabel("Mode"))
        self.mode_combo = QComboBox()
        self.mode_combo.addItems(["luck", "skill"])
        side_panel.addWidget(self.mode_combo)

        side_panel.addWidget(QLabel("Step interval"))
        self.speed_slider = QSlider(Qt.Horizontal)
        self.speed_slider.setRange(STEP_INTERVAL_MIN_MS, STEP_INTERVAL_MAX_MS)
        self.speed_slider.setValue(STEP_INTERVAL_MS)
        self.speed_slider.valueChanged.connect(self.step_timer.setInterval)
        side_panel.addWidget(self.speed_slider)

        self.reset_button = QPushButton("Reset")
        self.reset_button.clicked.connect(self.reset_machine)
        self.step_button = QPushButton("Step")
        self.step_button.clicked.connect(self.step_once)
        self.run_button = QPushButton("Run")
        self.run_button.clicked.connect(self.toggle_run)
        self.repeat_button = QPushButton("Repeat")
        self.repeat_button.clicked.connect(self.repeat_machine)
        self.lower_button = QPushButton("Lower half")
        self.lower_button.clicked.connect(self.keep_lower_half)
        self.upper_button = QPushButton("Upper half")
        self.upper_button.clicked.connect(self.keep_upper_half)
        for button in (
            self.reset_button,
            self.step_button,
            self.run_button,
            self.repeat_button,
            self.lower_button,
            self.upper_button,
        ):
            side_panel.addWidget(button)

        side_panel.addStretch(1)
        self.status_label = QLabel("")
        self.status_label.setObjectName("Status")
        self.status_label.setWordWrap(True)
        side_panel.addWidget(self.status_label)

        main_layout.addWidget(side_widget)

    def _apply_style(self) -> None:
        app = QApplication.instance()
        if app is not None:
            app.setStyle("Fusion")
            app.setFont(QFont("Avenir", 11))

        self.setStyleSheet(
            """
            QMainWindow { background: #23323f; }
            QLabel { color: #f7f3ea; }
            QLabel#Status { font-size: 11px; color: #e9ddc8; }
            QFrame#SidePanel {
                background: rgba(15, 20, 28, 0.35);
                border: 1px solid rgba(255, 255, 255, 0.08);
                border-radius: 14px;
            }
            QPushButton {
                background: #f2e0c2;
                border: 2px solid #b08a5a;
                border-radius: 8px;
                padding: 6px 10px;
                color: #3a2a18;
            }
            QPushButton:disabled { background: #8f8577; color: #4d4438; }
            """
        )

    def reset_machine(self) -> None:
        self._stop_running()
        slots = self.slots_spin.value()
        beans = make_beans(slots, self.beans_spin.value(), luck=self.mode_combo.currentText() == "luck")
        self.logic = BeanCounterLogic(slots)
        self.logic.reset(beans)
        self.ticks = 0
        self.refresh_ui()

    def repeat_machine(self) -> None:
        if self.logic is None:
            return
        self._stop_running()
        self.logic.repeat()
        self.ticks = 0
        self.refresh_ui()

    def step_once(self) -> bool:
        if self.logic is None:
            return False
        changed = self.logic.advance_step()
        if changed:
            self.ticks += 1
        else:
            self._stop_running()
        self.refresh_ui()
        return changed

    def toggle_run(self) -> None:
        if self.running:
            self._stop_running()
        else:
            self.running = True
            self.step_timer.start()
        self.update_controls()

    def keep_lower_half(self) -> None:
        if self.logic is None:
            return
        self.logic.lower_half()
        self.refresh_ui()

    def keep_upper_half(self) -> None:
        if self.logic is None:
            return
        self.logic.upper_half()
        self.refresh_ui()

    def _stop_running(self) -> None:
        self.running = False
        self.step_timer.stop()

    def refresh_ui(self) -> None:
        if self.logic is None:
            return
        self.board.set_snapshot(BoardSnapshot.from_logic(self.logic))
        self.update_status()
        self.update_controls()
        self.state_changed.emit()

    def update_status(self) -> None:
        logic = self.logic
        if logic is None:
            return
        lines: List[str] = [
            f"Tick: {self.ticks}",
            f"Waiting: {logic.remaining_count()}",
            f"In flight: {logic.in_flight_count()}",
            f"Settled: {logic.settled_count()}",
            f"Average slot: {logic.average_slot_index():.2f}",
        ]
        if logic.is_terminal():
            lines.append("Finished")
        self.status_label.setText("\n".join(lines))

    def update_controls(self) -> None:
        terminal = self.logic is None or self.logic.is_terminal()
        self.step_button.setEnabled(not terminal and not self.running)
        self.run_button.setEnabled(not terminal)
        self.run_button.setText("Pause" if self.running else "Run")
        self.lower_button.setEnabled(terminal and not self.running)
        self.upper_button.setEnabled(terminal and not self.running)

    def closeEvent(self, event) -> None:
        self._stop_running()
        super().closeEvent(event)


def main() -> int:
    app = QApplication(sys.argv)
    window = BeanMachineWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
