from __future__ import annotations

from krader.ui.watch_view import render_line


def test_render_line_pads_cells_to_column_widths():
    line = render_line(["A", "10.00"], [4, 7])
    assert line.plain == "A   10.00  "


def test_render_line_truncates_long_cells_leaving_a_gap():
    line = render_line(["XXBTZUSD", "1"], [5, 2])
    assert line.plain == "XXBT 1 "


def test_render_line_crops_at_horizontal_offset():
    assert render_line(["abc", "def"], [4, 4], offset_x=4).plain == "def "
    assert render_line(["abc", "def"], [4, 4], offset_x=100).plain == ""


def test_render_line_zero_width_column_disappears():
    assert render_line(["abc", "def"], [0, 4]).plain == "def "


def test_header_and_body_lines_stay_aligned_at_same_offset():
    widths = [6.0, 9.0]
    header = render_line(["Symbol", "Price"], widths, offset_x=3)
    body = render_line(["DOTUSD", "7.25"], widths, offset_x=3)
    assert len(header.plain) == len(body.plain)
