"""
Color functions: (rank, total) -> RGBA8.

Each function maps the progress rank/total in [0, 1) to a color. They accept
a plain int or a numpy array of ranks and return uint8 values with a trailing
RGBA axis, so a whole frame is colored in one call.

The perceptual variants work in Okhsv (Björn Ottosson's HSV built on Oklab),
converted to linear sRGB and then gamma encoded.
"""

import numpy as np

from .errors import ConfigError

# -----------------------------
# Oklab / Okhsv conversion
# -----------------------------

_TOE_K1 = 0.206
_TOE_K2 = 0.03
_TOE_K3 = (1.0 + _TOE_K1) / (1.0 + _TOE_K2)


def toe_inv(x):
    return (x * x + _TOE_K1 * x) / (_TOE_K3 * (x + _TOE_K2))


def oklab_to_linear_srgb(L, a, b):
    l_ = L + 0.3963377774 * a + 0.2158037573 * b
    m_ = L - 0.1055613458 * a - 0.0638541728 * b
    s_ = L - 0.0894841775 * a - 1.2914855480 * b
    l = l_ ** 3; m = m_ ** 3; s = s_ ** 3
    return (
        +4.0767416621 * l - 3.3077115913 * m + 0.2309699292 * s,
        -1.2684380046 * l + 2.6097574011 * m - 0.3413193965 * s,
        -0.0041960863 * l - 0.7034186147 * m + 1.7076147010 * s,
    )


def _max_saturation(a, b):
    """
    Largest S = C/L inside the sRGB gamut along hue (a, b), where a, b is a
    unit vector. Polynomial first guess per limiting channel, refined by one
    Halley step.
    """
    red = -1.88170328 * a - 0.80936493 * b > 1
    green = ~red & (1.81444104 * a - 1.19445276 * b > 1)

    def pick(r, g, bl):
        return np.where(red, r, np.where(green, g, bl))

    k0 = pick(1.19086277, 0.73956515, 1.35733652)
    k1 = pick(1.76576728, -0.45954404, -0.00915799)
    k2 = pick(0.59662641, 0.08285427, -1.15130210)
    k3 = pick(0.75515197, 0.12541070, -0.50559606)
    k4 = pick(0.56771245, 0.14503204, 0.00692167)
    wl = pick(4.0767416621, -1.2684380046, -0.0041960863)
    wm = pick(-3.3077115913, 2.6097574011, -0.7034186147)
    ws = pick(0.2309699292, -0.3413193965, 1.7076147010)

    S = k0 + k1 * a + k2 * b + k3 * a * a + k4 * a * b

    k_l = 0.3963377774 * a + 0.2158037573 * b
    k_m = -0.1055613458 * a - 0.0638541728 * b
    k_s = -0.0894841775 * a - 1.2914855480 * b

    l_ = 1.0 + S * k_l
    m_ = 1.0 + S * k_m
    s_ = 1.0 + S * k_s

    l = l_ ** 3; m = m_ ** 3; s = s_ ** 3
    l_dS = 3.0 * k_l * l_ * l_; m_dS = 3.0 * k_m * m_ * m_; s_dS = 3.0 * k_s * s_ * s_
    l_dS2 = 6.0 * k_l * k_l * l_; m_dS2 = 6.0 * k_m * k_m * m_; s_dS2 = 6.0 * k_s * k_s * s_

    f = wl * l + wm * m + ws * s
    f1 = wl * l_dS + wm * m_dS + ws * s_dS
    f2 = wl * l_dS2 + wm * m_dS2 + ws * s_dS2
    return S - f * f1 / (f1 * f1 - 0.5 * f * f2)


def find_cusp(a, b):
    """Lightness and chroma of the most saturated in-gamut color of a hue."""
    S_cusp = _max_saturation(a, b)
    r, g, bl = oklab_to_linear_srgb(1.0, S_cusp * a, S_cusp * b)
    L_cusp = np.cbrt(1.0 / np.maximum(np.maximum(r, g), bl))
    return L_cusp, L_cusp * S_cusp


def okhsv_to_oklab(hue_degrees, saturation, value):
    h, s, v = np.broadcast_arrays(
        np.asarray(hue_degrees, dtype=np.float64),
        np.asarray(saturation, dtype=np.float64),
        np.asarray(value, dtype=np.float64),
    )
    h_rad = np.deg2rad(h)
    a_ = np.cos(h_rad)
    b_ = np.sin(h_rad)

    L_cusp, C_cusp = find_cusp(a_, b_)
    S_max = C_cusp / L_cusp
    T_max = C_cusp / (1.0 - L_cusp)
    S_0 = 0.5
    k = 1.0 - S_0 / S_max

    # L, C for value 1 as if the gamut were a perfect triangle
    denom = S_0 + T_max - T_max * k * s
    L_v = 1.0 - s * S_0 / denom
    C_v = s * T_max * S_0 / denom

    # compensate for the toe and the curved top of the triangle
    L_vt = toe_inv(L_v)
    C_vt = C_v * L_vt / L_v

    L = v * L_v
    C = v * C_v
    L_new = toe_inv(L)
    C = C * np.divide(L_new, L, out=np.zeros_like(L), where=L > 0)

    r, g, b = oklab_to_linear_srgb(L_vt, a_ * C_vt, b_ * C_vt)
    scale = np.cbrt(1.0 / np.maximum(np.maximum(np.maximum(r, g), b), 0.0))

    L = L_new * scale
    C = C * scale
    black = v <= 0
    return (
        np.where(black, 0.0, L),
        np.where(black, 0.0, C * a_),
        np.where(black, 0.0, C * b_),
    )

# -----------------------------
# sRGB encoding
# -----------------------------

def srgb_encode(x):
    x = np.clip(x, 0.0, 1.0)
    return np.where(x <= 0.0031308, 12.92 * x, 1.055 * np.power(x, 1.0 / 2.4) - 0.055)


def linear_to_rgba8(r, g, b):
    rgb = np.stack(np.broadcast_arrays(r, g, b), axis=-1)
    out = np.empty(rgb.shape[:-1] + (4,), dtype=np.uint8)
    out[..., :3] = np.clip(np.round(srgb_encode(rgb) * 255.0), 0, 255).astype(np.uint8)
    out[..., 3] = 255
    return out


def okhsv_to_rgba8(hue_degrees, saturation, value):
    return linear_to_rgba8(*oklab_to_linear_srgb(*okhsv_to_oklab(hue_degrees, saturation, value)))

# -----------------------------
# Color functions
# -----------------------------

def _progress(rank, total):
    return np.asarray(rank, dtype=np.float64) / float(total)


def oklab_hue(rank, total):
    """Full hue sweep at full saturation and value."""
    return okhsv_to_rgba8(_progress(rank, total) * 360.0, 1.0, 1.0)


def oklab_hue_sine_value(rank, total):
    """Hue sweep with 8 bands of pulsing brightness."""
    progress = _progress(rank, total)
    sine_cycles = 8.0
    value = np.sin(progress * 2.0 * np.pi * sine_cycles) * 0.375 + 0.625
    return okhsv_to_rgba8(progress * 360.0, 1.0, value)


def square_value(rank, total):
    """Grayscale, two parabolic pulses over the whole range."""
    progress = np.mod(_progress(rank, total) * 2.0, 1.0)
    value = -(progress * 2.0 - 1.0) ** 2 + 1.0
    return okhsv_to_rgba8(0.0, 0.0, value)


def square_channel(progress):
    return np.maximum(-(progress * 4.0 - 2.0) ** 2 + 1.0, 0.0)


def square_linsrgb_channels(rank, total):
    """R, G and B pulses a third of a cycle apart, straight in linear sRGB."""
    progress = _progress(rank, total)
    red = np.mod(progress + 1.0 / 3.0, 1.0)
    green = progress
    blue = np.mod(progress - 1.0 / 3.0, 1.0)
    return linear_to_rgba8(square_channel(red), square_channel(green), square_channel(blue))


COLOR_FUNCTIONS = {
    "oklab_hue": oklab_hue,
    "oklab_hue_sine_value": oklab_hue_sine_value,
    "square_value": square_value,
    "square_linsrgb_channels": square_linsrgb_channels,
}


def get_color_function(name):
    try:
        return COLOR_FUNCTIONS[name]
    except KeyError:
        raise ConfigError(f"unknown function {name}") from None
