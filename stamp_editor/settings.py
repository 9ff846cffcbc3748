from dataclasses import dataclass, field, fields, replace
from enum import Enum, IntEnum


class ValueHandlingMethod(IntEnum):
    DO_NOTHING = 0
    ADD = 1
    ADD_PERCENT = 2
    ADD_PERCENT_CURRENT = 3
    MATCH_VALUE = 4
    MATCH_PERCENT = 5


class BlendMode(IntEnum):
    NORMAL = 0
    OVERWRITE = 1
    ADDITIVE = 2
    COLOR_BURN = 3
    COLOR_DODGE = 4
    DARKEN = 5
    DIFFERENCE = 6
    GLOW = 7
    LIGHTEN = 8
    MULTIPLY = 9
    NEGATION = 10
    OVERLAY = 11
    REFLECT = 12
    SCREEN = 13
    XOR = 14


class SymmetryMode(IntEnum):
    # values are stable: STAR_N == N + 2
    NONE = 0
    HORIZONTAL = 1
    VERTICAL = 2
    STAR2 = 3
    SET_POINTS = 4
    STAR3 = 5
    STAR4 = 6
    STAR5 = 7
    STAR6 = 8
    STAR7 = 9
    STAR8 = 10
    STAR9 = 11
    STAR10 = 12
    STAR11 = 13
    STAR12 = 14

    @property
    def is_radial(self) -> bool:
        return self >= SymmetryMode.STAR3

    @property
    def point_count(self) -> int:
        if self.is_radial:
            return int(self) - 2
        if self in (SymmetryMode.HORIZONTAL, SymmetryMode.VERTICAL, SymmetryMode.STAR2):
            return 2
        return 1


class Smoothing(IntEnum):
    NORMAL = 0   # bilinear
    HIGH = 1     # bicubic
    JAGGED = 2   # nearest neighbour, aliased alpha


class Tool(Enum):
    BRUSH = "brush"
    COLOR_PICKER = "color_picker"
    ERASER = "eraser"
    SET_SYMMETRY_ORIGIN = "set_symmetry_origin"


@dataclass
class PressureMapping:
    method: ValueHandlingMethod = ValueHandlingMethod.DO_NOTHING
    delta: int = 0


@dataclass(frozen=True)
class SettingField:
    name: str
    minimum: int
    maximum: int
    pressure_sensitive: bool = True
    label: str = ""


def _f(name, minimum, maximum, label, pressure_sensitive=True):
    return SettingField(name, minimum, maximum, pressure_sensitive, label)


# Numeric brush fields. Shortcut dispatch, panels and preset (de)serialization
# are written against this table rather than against individual attributes.
SETTING_FIELDS: dict[str, SettingField] = {f.name: f for f in (
    _f("size", 1, 1000, "Size"),
    _f("alpha", 0, 255, "Alpha"),
    _f("rotation", -180, 180, "Rotation"),
    _f("density", 0, 50, "Density"),
    _f("min_draw_distance", 0, 100, "Min. draw distance"),
    _f("rand_min_size", 0, 1000, "Random min size"),
    _f("rand_max_size", 0, 1000, "Random max size"),
    _f("rand_rot_left", 0, 180, "Random rotation left"),
    _f("rand_rot_right", 0, 180, "Random rotation right"),
    _f("rand_min_alpha", 0, 100, "Random alpha loss"),
    _f("rand_horz_shift", 0, 100, "Random horizontal shift"),
    _f("rand_vert_shift", 0, 100, "Random vertical shift"),
    _f("rand_min_red", 0, 100, "Random min red"),
    _f("rand_max_red", 0, 100, "Random max red"),
    _f("rand_min_green", 0, 100, "Random min green"),
    _f("rand_max_green", 0, 100, "Random max green"),
    _f("rand_min_blue", 0, 100, "Random min blue"),
    _f("rand_max_blue", 0, 100, "Random max blue"),
    _f("rand_min_hue", 0, 100, "Random min hue"),
    _f("rand_max_hue", 0, 100, "Random max hue"),
    _f("rand_min_sat", 0, 100, "Random min saturation"),
    _f("rand_max_sat", 0, 100, "Random max saturation"),
    _f("rand_min_val", 0, 100, "Random min value"),
    _f("rand_max_val", 0, 100, "Random max value"),
    _f("size_change", -1000, 1000, "Shift size", pressure_sensitive=False),
    _f("rotation_change", -180, 180, "Shift rotation", pressure_sensitive=False),
    _f("alpha_change", -255, 255, "Shift alpha", pressure_sensitive=False),
)}

RGB_JITTER_FIELDS = ("red", "green", "blue")
HSV_JITTER_FIELDS = ("hue", "sat", "val")
CHANNEL_LOCK_FIELDS = ("lock_red", "lock_green", "lock_blue", "lock_hue", "lock_sat", "lock_val")
_BOOL_FIELDS = ("automatic_density", "orient_to_mouse", "colorize_brush", "lock_alpha",
                *CHANNEL_LOCK_FIELDS, "seamless_drawing")


@dataclass
class BrushSettings:
    brush_image: str = "Circle"
    color: tuple[int, int, int] = (0, 0, 0)

    size: int = 20
    alpha: int = 255
    rotation: int = 0
    density: int = 10
    min_draw_distance: int = 0

    rand_min_size: int = 0
    rand_max_size: int = 0
    rand_rot_left: int = 0
    rand_rot_right: int = 0
    rand_min_alpha: int = 0
    rand_horz_shift: int = 0
    rand_vert_shift: int = 0
    rand_min_red: int = 0
    rand_max_red: int = 0
    rand_min_green: int = 0
    rand_max_green: int = 0
    rand_min_blue: int = 0
    rand_max_blue: int = 0
    rand_min_hue: int = 0
    rand_max_hue: int = 0
    rand_min_sat: int = 0
    rand_max_sat: int = 0
    rand_min_val: int = 0
    rand_max_val: int = 0

    size_change: int = 0
    rotation_change: int = 0
    alpha_change: int = 0

    automatic_density: bool = True
    orient_to_mouse: bool = False
    colorize_brush: bool = True
    lock_alpha: bool = False
    lock_red: bool = False
    lock_green: bool = False
    lock_blue: bool = False
    lock_hue: bool = False
    lock_sat: bool = False
    lock_val: bool = False
    seamless_drawing: bool = False

    blend_mode: BlendMode = BlendMode.NORMAL
    smoothing: Smoothing = Smoothing.NORMAL
    symmetry: SymmetryMode = SymmetryMode.NONE

    # field name -> PressureMapping; absent entries mean DO_NOTHING
    pressure: dict[str, PressureMapping] = field(default_factory=dict)

    def pressure_for(self, name: str) -> PressureMapping:
        return self.pressure.get(name) or PressureMapping()

    def set_pressure(self, name: str, method: ValueHandlingMethod, delta: int = 0):
        meta = SETTING_FIELDS.get(name)
        if meta is None or not meta.pressure_sensitive:
            raise KeyError(f"Setting {name!r} is not pressure sensitive")
        self.pressure[name] = PressureMapping(ValueHandlingMethod(method), int(delta))

    def channel_locks(self) -> tuple[bool, bool, bool, bool, bool, bool]:
        """(red, green, blue, hue, sat, val) locks."""
        return tuple(getattr(self, name) for name in CHANNEL_LOCK_FIELDS)

    def copy(self) -> "BrushSettings":
        return replace(self, pressure={k: replace(v) for k, v in self.pressure.items()})


def clamp(value, low, high):
    return max(low, min(value, high))


def get_setting(settings: BrushSettings, name: str) -> int:
    if name not in SETTING_FIELDS:
        raise KeyError(f"Unknown setting: {name}")
    return getattr(settings, name)


def set_setting(settings: BrushSettings, name: str, value) -> int:
    """Set a numeric field, clamped to its range. Returns the stored value."""
    meta = SETTING_FIELDS.get(name)
    if meta is None:
        raise KeyError(f"Unknown setting: {name}")
    value = clamp(int(value), meta.minimum, meta.maximum)
    setattr(settings, name, value)
    return value


def resolve_density(settings: BrushSettings, size: int) -> int:
    """Density to space stamps with; automatic density picks a tier by size."""
    if not settings.automatic_density:
        return settings.density
    if size <= 1:
        return 1
    if size < 5:
        return 2
    if size < 10:
        return 3
    if size < 25:
        return 5
    if size < 50:
        return 7
    return 10


_ENUM_FIELDS = {
    "blend_mode": BlendMode,
    "smoothing": Smoothing,
    "symmetry": SymmetryMode,
}


def to_dict(settings: BrushSettings) -> dict:
    d = {}
    for f in fields(settings):
        value = getattr(settings, f.name)
        if f.name == "pressure":
            value = {k: [int(m.method), m.delta] for k, m in value.items()
                     if m.method != ValueHandlingMethod.DO_NOTHING}
        elif f.name == "color":
            value = list(value)
        elif f.name in _ENUM_FIELDS:
            value = int(value)
        d[f.name] = value
    return d


def from_dict(d: dict) -> BrushSettings:
    settings = BrushSettings()
    for name in SETTING_FIELDS:
        if name in d:
            set_setting(settings, name, d[name])
    for name, enum_type in _ENUM_FIELDS.items():
        if name in d:
            setattr(settings, name, enum_type(d[name]))
    for name in _BOOL_FIELDS:
        if name in d:
            setattr(settings, name, bool(d[name]))
    if "brush_image" in d:
        settings.brush_image = str(d["brush_image"])
    if "color" in d:
        r, g, b = (clamp(int(c), 0, 255) for c in d["color"][:3])
        settings.color = (r, g, b)
    for name, (method, delta) in d.get("pressure", {}).items():
        settings.set_pressure(name, ValueHandlingMethod(method), delta)
    return settings
