from __future__ import annotations

import pytest

from genki_badge.badge import VALID_BADGE_STYLES, badge_message, render_badge, resolve_style, text_width
from genki_badge.models import HealthStatus


def test_unknown_styles_fall_back_to_flat():
    assert resolve_style("flat-square") == "flat-square"
    assert resolve_style("neon") == "flat"
    assert resolve_style(None) == "flat"


def test_badge_message_includes_commit_count():
    assert badge_message(HealthStatus.HEALTHY, 21) == "😎 元気 (21)"
    assert badge_message(HealthStatus.INACTIVE, 0) == "🙁 元気ない (0)"


@pytest.mark.parametrize("style", VALID_BADGE_STYLES)
def test_render_badge_produces_svg_for_every_style(style):
    svg = render_badge(HealthStatus.MODERATE, 7, style)

    assert svg.lstrip().startswith("<svg")
    assert svg.rstrip().endswith("</svg>")
    assert "(7)" in svg


def test_flat_badge_carries_label_and_status_color():
    svg = render_badge(HealthStatus.HEALTHY, 30)

    assert "Am I Genki?" in svg
    assert "#4c1" in svg


def test_render_badge_uses_status_color():
    assert 'fill="#e05d44"' in render_badge(HealthStatus.INACTIVE, 1, "plastic")
    assert 'fill="#dfb317"' in render_badge(HealthStatus.MODERATE, 6, "flat-square")
    assert "AM I GENKI?" in render_badge(HealthStatus.HEALTHY, 30, "for-the-badge")


def test_text_width_follows_glyph_metrics():
    assert text_width("WWWW") > text_width("iiii")
    assert text_width("Am I Genki?", font_size=10.0, letter_spacing=1.0) > text_width("Am I Genki?", font_size=10.0)
