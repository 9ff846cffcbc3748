from .settings import BrushSettings, SETTING_FIELDS, ValueHandlingMethod


def resolve(base: int, delta: int, value_range: int, ratio: float | None,
            method: ValueHandlingMethod) -> int:
    """Map a setting value through a pressure ratio.

    The result is not clamped; callers clamp to the field's own range, and
    some of them rely on out-of-range intermediates.
    """
    if ratio is None:
        ratio = 0.0
    ratio = max(0.0, min(float(ratio), 1.0))

    if method == ValueHandlingMethod.ADD:
        return int(base + ratio * delta)
    if method == ValueHandlingMethod.ADD_PERCENT:
        return int(base + ratio * delta / 100 * value_range)
    if method == ValueHandlingMethod.ADD_PERCENT_CURRENT:
        return int(base + ratio * delta / 100 * base)
    if method == ValueHandlingMethod.MATCH_VALUE:
        return int((1 - ratio) * base + ratio * delta)
    if method == ValueHandlingMethod.MATCH_PERCENT:
        return int((1 - ratio) * base + ratio * delta / 100 * value_range)
    return int(base)


def resolve_setting(settings: BrushSettings, name: str, ratio: float | None) -> int:
    meta = SETTING_FIELDS[name]
    mapping = settings.pressure_for(name)
    return resolve(getattr(settings, name), mapping.delta, meta.maximum,
                   ratio, mapping.method)


def resolve_clamped(settings: BrushSettings, name: str, ratio: float | None) -> int:
    meta = SETTING_FIELDS[name]
    return max(meta.minimum, min(resolve_setting(settings, name, ratio), meta.maximum))
