from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image, ImageDraw, ImageFont

from aspbot.utils.formatting import format_hm


@dataclass(frozen=True, slots=True)
class CardRow:
    rank: int
    name: str
    cohort: str
    minutes: int
    reward_days: int


def _try_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """
    Tries common fonts. Falls back to PIL default if truetype not available.
    """
    candidates = [
        "C:\\Windows\\Fonts\\segoeui.ttf",
        "C:\\Windows\\Fonts\\arial.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    ]
    for path in candidates:
        try:
            return ImageFont.truetype(path, size=size)
        except OSError:
            continue
    return ImageFont.load_default()


def _text(draw: ImageDraw.ImageDraw, xy: tuple[int, int], s: str, font, fill=(20, 20, 20)) -> None:
    draw.text(xy, s, font=font, fill=fill)


def _fit(s: str, limit: int) -> str:
    return s if len(s) <= limit else s[: limit - 1] + "…"


def render_leaderboard_card(
    *,
    title: str,
    subtitle: str,
    rows: list[CardRow],
    max_rows: int = 10,
) -> bytes:
    """
    Returns PNG bytes: header + up to `max_rows` ranked rows.
    Height grows with the row count.
    """
    shown = rows[:max_rows]

    W = 1200
    pad = 48
    header_h = 160
    row_h = 64
    body_rows = max(len(shown), 1)
    H = pad + header_h + 26 + 72 + body_rows * row_h + 80 + pad

    img = Image.new("RGB", (W, H), (248, 249, 251))
    draw = ImageDraw.Draw(img)

    font_title = _try_font(50)
    font_sub = _try_font(26)
    font_row = _try_font(30)
    font_small = _try_font(22)

    draw.rounded_rectangle(
        (pad, pad, W - pad, pad + header_h),
        radius=28,
        fill=(255, 255, 255),
        outline=(235, 236, 240),
        width=2,
    )
    _text(draw, (pad + 32, pad + 26), title, font_title, fill=(15, 23, 42))
    _text(draw, (pad + 32, pad + 98), subtitle, font_sub, fill=(55, 65, 81))

    body_top = pad + header_h + 26
    draw.rounded_rectangle(
        (pad, body_top, W - pad, H - pad),
        radius=28,
        fill=(255, 255, 255),
        outline=(235, 236, 240),
        width=2,
    )

    col_rank = pad + 36
    col_name = pad + 140
    col_class = W - pad - 470
    col_time = W - pad - 340
    col_days = W - pad - 140

    for x, label in (
        (col_rank, "#"),
        (col_name, "Name"),
        (col_class, "Class"),
        (col_time, "Total"),
        (col_days, "Days"),
    ):
        _text(draw, (x, body_top + 28), label, font_small, fill=(107, 114, 128))

    row_y = body_top + 72
    if not shown:
        _text(draw, (col_name, row_y + 14), "No minutes logged yet.", font_row, fill=(156, 163, 175))

    for i, r in enumerate(shown):
        y1 = row_y + i * row_h
        if i % 2 == 0:
            draw.rounded_rectangle(
                (pad + 20, y1, W - pad - 20, y1 + row_h - 8),
                radius=18,
                fill=(249, 250, 251),
            )
        _text(draw, (col_rank, y1 + 12), str(r.rank), font_row, fill=(15, 23, 42))
        _text(draw, (col_name, y1 + 12), _fit(r.name, 32), font_row, fill=(15, 23, 42))
        _text(draw, (col_class, y1 + 12), r.cohort, font_row, fill=(15, 23, 42))
        _text(draw, (col_time, y1 + 12), format_hm(r.minutes), font_row, fill=(15, 23, 42))
        _text(draw, (col_days, y1 + 12), str(r.reward_days), font_row, fill=(15, 23, 42))

    _text(
        draw,
        (pad + 36, H - pad - 40),
        "All-time minutes inside ASP windows, overrides applied",
        font_small,
        fill=(156, 163, 175),
    )

    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=True)
    return buf.getvalue()
