from PyQt6.QtWidgets import (
    QDockWidget, QWidget, QVBoxLayout, QHBoxLayout, QFormLayout,
    QPushButton, QSlider, QLabel, QGroupBox, QComboBox, QCheckBox,
    QColorDialog, QScrollArea,
)
from PyQt6.QtGui import QPixmap, QIcon, QColor
from PyQt6.QtCore import Qt, pyqtSignal

from .settings import (
    SETTING_FIELDS, BlendMode, Smoothing, SymmetryMode, Tool, set_setting,
)
from .stroke import StrokeEngine

_BASIC = ("size", "alpha", "rotation", "density", "min_draw_distance")
_SHIFT = ("size_change", "rotation_change", "alpha_change")
_TOGGLES = (
    ("automatic_density", "Automatic density"),
    ("orient_to_mouse", "Orient to mouse"),
    ("colorize_brush", "Colorize brush"),
    ("lock_alpha", "Lock alpha"),
    ("lock_red", "Lock red"),
    ("lock_green", "Lock green"),
    ("lock_blue", "Lock blue"),
    ("lock_hue", "Lock hue"),
    ("lock_sat", "Lock saturation"),
    ("lock_val", "Lock value"),
    ("seamless_drawing", "Seamless drawing"),
)


def _enum_label(member) -> str:
    return member.name.replace("_", " ").title()


class BrushPanel(QDockWidget):
    tool_changed = pyqtSignal(object)   # Tool

    def __init__(self, engine: StrokeEngine, parent=None):
        super().__init__("Brush", parent)
        self._engine = engine
        self._sliders: dict[str, tuple[QSlider, QLabel]] = {}
        self._checks: dict[str, QCheckBox] = {}
        self._syncing = False
        self.setAllowedAreas(
            Qt.DockWidgetArea.LeftDockWidgetArea |
            Qt.DockWidgetArea.RightDockWidgetArea
        )
        self.setMinimumWidth(240)

        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(4, 4, 4, 4)

        # --- Tool / brush image / color ---
        form = QFormLayout()
        self._tool_combo = self._enum_combo(Tool)
        form.addRow("Tool:", self._tool_combo)
        self._brush_combo = QComboBox()
        form.addRow("Brush:", self._brush_combo)
        self._color_btn = QPushButton()
        self._color_btn.setFixedSize(40, 24)
        color_row = QHBoxLayout()
        color_row.addWidget(self._color_btn)
        color_row.addStretch()
        form.addRow("Color:", color_row)
        self._blend_combo = self._enum_combo(BlendMode)
        form.addRow("Blend:", self._blend_combo)
        self._symmetry_combo = self._enum_combo(SymmetryMode)
        form.addRow("Symmetry:", self._symmetry_combo)
        self._smoothing_combo = self._enum_combo(Smoothing)
        form.addRow("Smoothing:", self._smoothing_combo)
        layout.addLayout(form)

        for name, label in _TOGGLES:
            check = QCheckBox(label)
            check.toggled.connect(lambda on, n=name: self._on_toggled(n, on))
            self._checks[name] = check
            layout.addWidget(check)

        # --- Sliders ---
        random_fields = [n for n in SETTING_FIELDS if n.startswith("rand_")]
        layout.addWidget(self._slider_group("Brush", _BASIC))
        layout.addWidget(self._slider_group("Randomness", random_fields))
        layout.addWidget(self._slider_group("Shift", _SHIFT))
        layout.addStretch()

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(container)
        self.setWidget(scroll)

        # --- Connections ---
        self._color_btn.clicked.connect(self._pick_color)
        self._tool_combo.currentIndexChanged.connect(self._on_tool_changed)
        self._brush_combo.currentTextChanged.connect(self._on_brush_changed)
        self._blend_combo.currentIndexChanged.connect(
            lambda _: self._on_enum_changed("blend_mode", BlendMode, self._blend_combo))
        self._symmetry_combo.currentIndexChanged.connect(
            lambda _: self._on_enum_changed("symmetry", SymmetryMode, self._symmetry_combo))
        self._smoothing_combo.currentIndexChanged.connect(
            lambda _: self._on_enum_changed("smoothing", Smoothing, self._smoothing_combo))
        engine.settings_changed.connect(self.sync_from_settings)

        self.refresh_brushes()
        self.sync_from_settings()

    # --- Construction ---

    @staticmethod
    def _enum_combo(enum_type) -> QComboBox:
        combo = QComboBox()
        for member in enum_type:
            combo.addItem(_enum_label(member), member.value)
        return combo

    def _slider_group(self, title, names) -> QGroupBox:
        group = QGroupBox(title)
        group_layout = QVBoxLayout(group)
        for name in names:
            meta = SETTING_FIELDS[name]
            group_layout.addWidget(QLabel(meta.label + ":"))
            row = QHBoxLayout()
            slider = QSlider(Qt.Orientation.Horizontal)
            slider.setRange(meta.minimum, meta.maximum)
            value_label = QLabel()
            value_label.setFixedWidth(36)
            row.addWidget(slider)
            row.addWidget(value_label)
            group_layout.addLayout(row)
            slider.valueChanged.connect(lambda v, n=name: self._on_slider_changed(n, v))
            self._sliders[name] = (slider, value_label)
        return group

    # --- Sync ---

    def refresh_brushes(self):
        self._syncing = True
        self._brush_combo.clear()
        self._brush_combo.addItems(self._engine.brushes.names())
        self._brush_combo.setCurrentText(self._engine.settings.brush_image)
        self._syncing = False

    def sync_from_settings(self):
        s = self._engine.settings
        self._syncing = True
        for name, (slider, label) in self._sliders.items():
            value = getattr(s, name)
            slider.setValue(value)
            label.setText(str(value))
        for name, check in self._checks.items():
            check.setChecked(getattr(s, name))
        for combo, value in ((self._blend_combo, s.blend_mode),
                             (self._symmetry_combo, s.symmetry),
                             (self._smoothing_combo, s.smoothing),
                             (self._tool_combo, self._engine.tool)):
            combo.setCurrentIndex(combo.findData(value.value))
        self._brush_combo.setCurrentText(s.brush_image)
        self._syncing = False
        self._update_color_icon()

    def _update_color_icon(self):
        r, g, b = self._engine.settings.color
        px = QPixmap(32, 16)
        px.fill(QColor(r, g, b))
        self._color_btn.setIcon(QIcon(px))

    # --- Handlers ---

    def _pick_color(self):
        r, g, b = self._engine.settings.color
        color = QColorDialog.getColor(QColor(r, g, b), self, "Brush Color")
        if color.isValid():
            self.set_color(color.red(), color.green(), color.blue())

    def set_color(self, r, g, b):
        self._engine.settings.color = (r, g, b)
        self._update_color_icon()

    def _on_slider_changed(self, name, value):
        _, label = self._sliders[name]
        label.setText(str(value))
        if not self._syncing:
            set_setting(self._engine.settings, name, value)

    def _on_toggled(self, name, on):
        if not self._syncing:
            setattr(self._engine.settings, name, on)

    def _on_enum_changed(self, name, enum_type, combo):
        if self._syncing:
            return
        value = enum_type(combo.currentData())
        setattr(self._engine.settings, name, value)
        if name == "symmetry":
            self._engine.symmetry.mode = value
            self._engine.symmetry_changed.emit()

    def _on_tool_changed(self, _):
        if self._syncing:
            return
        self._engine.tool = Tool(self._tool_combo.currentData())
        self.tool_changed.emit(self._engine.tool)

    def _on_brush_changed(self, name):
        if not self._syncing and name:
            self._engine.settings.brush_image = name
