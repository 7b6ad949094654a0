"""SVG badge rendering."""

from __future__ import annotations

import math
from dataclasses import dataclass
from html import escape

import pybadges
from pybadges.precalculated_text_measurer import PrecalculatedTextMeasurer

from .models import HealthStatus

VALID_BADGE_STYLES = ("flat", "flat-square", "plastic", "for-the-badge", "social")
DEFAULT_BADGE_STYLE = "flat"
LABEL = "Am I Genki?"

FONT_FAMILY = "Verdana,Geneva,DejaVu Sans,sans-serif"
LABEL_COLOR = "#555"


@dataclass(slots=True, frozen=True)
class StatusAppearance:
    color: str
    text: str
    emoji: str


APPEARANCES: dict[HealthStatus, StatusAppearance] = {
    HealthStatus.HEALTHY: StatusAppearance(color="#4c1", text="元気", emoji="😎"),
    HealthStatus.MODERATE: StatusAppearance(color="#dfb317", text="いまいち", emoji="😑"),
    HealthStatus.INACTIVE: StatusAppearance(color="#e05d44", text="元気ない", emoji="🙁"),
}

_GRADIENTS = {
    "plastic": (
        '<linearGradient id="s" x2="0" y2="100%">'
        '<stop offset="0" stop-color="#fff" stop-opacity=".7"/>'
        '<stop offset=".1" stop-color="#aaa" stop-opacity=".1"/>'
        '<stop offset=".9" stop-opacity=".3"/>'
        '<stop offset="1" stop-opacity=".5"/></linearGradient>'
    ),
}
_RADIUS = {"flat-square": 0, "plastic": 4}


def is_valid_badge_style(style: str | None) -> bool:
    return style in VALID_BADGE_STYLES


def resolve_style(style: str | None) -> str:
    """Return ``style`` if it is supported, otherwise the default style."""

    return style if is_valid_badge_style(style) else DEFAULT_BADGE_STYLE  # type: ignore[return-value]


def badge_message(status: HealthStatus, commits: int) -> str:
    appearance = APPEARANCES[HealthStatus(status)]
    return f"{appearance.emoji} {appearance.text} ({commits})"


def render_badge(status: HealthStatus, commits: int, style: str | None = DEFAULT_BADGE_STYLE) -> str:
    """Render the badge for ``status`` and ``commits`` as an SVG document.

    The flat style is drawn by pybadges; the remaining styles are templated
    here with the same Verdana width tables.
    """

    style = resolve_style(style)
    appearance = APPEARANCES[HealthStatus(status)]
    message = badge_message(status, commits)
    if style == "flat":
        return pybadges.badge(
            left_text=LABEL,
            right_text=message,
            left_color=LABEL_COLOR,
            right_color=appearance.color,
        )
    if style == "for-the-badge":
        return _render_for_the_badge(LABEL, message, appearance.color)
    if style == "social":
        return _render_social(LABEL, message)
    return _render_plain(LABEL, message, appearance.color, style)


def text_width(text: str, *, font_size: float = 11.0, letter_spacing: float = 0.0) -> int:
    """Rendered width of ``text`` in pixels, measured against Verdana at ``font_size``."""

    measured = PrecalculatedTextMeasurer.default().text_width(text)
    return math.ceil(measured * font_size / 11.0 + letter_spacing * len(text))


def _render_plain(label: str, message: str, color: str, style: str) -> str:
    label_width = text_width(label) + 10
    message_width = text_width(message) + 10
    total = label_width + message_width
    title = escape(f"{label}: {message}")
    gradient = _GRADIENTS.get(style, "")
    overlay = f'<rect width="{total}" height="20" fill="url(#s)"/>' if gradient else ""
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{total}" height="20" role="img" aria-label="{title}">'
        f"<title>{title}</title>{gradient}"
        f'<clipPath id="r"><rect width="{total}" height="20" rx="{_RADIUS[style]}" fill="#fff"/></clipPath>'
        f'<g clip-path="url(#r)">'
        f'<rect width="{label_width}" height="20" fill="{LABEL_COLOR}"/>'
        f'<rect x="{label_width}" width="{message_width}" height="20" fill="{color}"/>{overlay}</g>'
        f'<g fill="#fff" text-anchor="middle" font-family="{FONT_FAMILY}" font-size="11">'
        f'<text x="{label_width / 2:.1f}" y="14">{escape(label)}</text>'
        f'<text x="{label_width + message_width / 2:.1f}" y="14">{escape(message)}</text>'
        f"</g></svg>"
    )


def _render_for_the_badge(label: str, message: str, color: str) -> str:
    label, message = label.upper(), message.upper()
    label_width = text_width(label, font_size=10.0, letter_spacing=1.0) + 20
    message_width = text_width(message, font_size=10.0, letter_spacing=1.0) + 20
    total = label_width + message_width
    title = escape(f"{label}: {message}")
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{total}" height="28" role="img" aria-label="{title}">'
        f"<title>{title}</title>"
        f'<g shape-rendering="crispEdges">'
        f'<rect width="{label_width}" height="28" fill="{LABEL_COLOR}"/>'
        f'<rect x="{label_width}" width="{message_width}" height="28" fill="{color}"/></g>'
        f'<g fill="#fff" text-anchor="middle" font-family="{FONT_FAMILY}" font-size="10" letter-spacing="1">'
        f'<text x="{label_width / 2:.1f}" y="18">{escape(label)}</text>'
        f'<text x="{label_width + message_width / 2:.1f}" y="18" font-weight="bold">{escape(message)}</text>'
        f"</g></svg>"
    )


def _render_social(label: str, message: str) -> str:
    label_width = text_width(label) + 12
    message_width = text_width(message) + 10
    bubble_x = label_width + 6
    total = bubble_x + message_width + 1
    title = escape(f"{label}: {message}")
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{total}" height="20" role="img" aria-label="{title}">'
        f"<title>{title}</title>"
        f'<g stroke="#d5d5d5">'
        f'<rect x=".5" y=".5" width="{label_width - 1}" height="19" rx="2" fill="#fcfcfc"/>'
        f'<rect x="{bubble_x + 0.5}" y=".5" width="{message_width - 1}" height="19" rx="2" fill="#fafafa"/>'
        f'<path d="M{bubble_x} 7.5 l-3 2.5 l3 2.5" fill="#fafafa"/></g>'
        f'<g fill="#333" text-anchor="middle" font-family="Helvetica Neue,Helvetica,Arial,sans-serif" '
        f'font-size="11" font-weight="700">'
        f'<text x="{label_width / 2:.1f}" y="14">{escape(label)}</text>'
        f'<text x="{bubble_x + message_width / 2:.1f}" y="14">{escape(message)}</text>'
        f"</g></svg>"
    )


__all__ = [
    "APPEARANCES",
    "DEFAULT_BADGE_STYLE",
    "VALID_BADGE_STYLES",
    "badge_message",
    "is_valid_badge_style",
    "render_badge",
    "resolve_style",
    "text_width",
]
