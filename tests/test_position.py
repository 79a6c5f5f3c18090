"""
Unit tests for page number and vertical offset resolution.

Run with: python -m pytest tests/test_position.py -v
"""

import pytest

from annotexport.position import normalized_top, resolve_page_number, resolve_vertical_offset
from annotexport.types import Rect, parse_annotation


class TestResolvePageNumber:
    """Precedence and tolerance of page number resolution."""

    def test_screenshot_page_wins(self):
        ann = parse_annotation(
            {
                'kind': 'screenshot',
                'screenshot': {'pageNumber': 4},
                'position': {'pageNumber': 9},
            }
        )
        assert resolve_page_number(ann) == 4

    def test_screenshot_without_page_uses_position(self):
        ann = parse_annotation({'kind': 'screenshot', 'screenshot': {}, 'position': {'pageNumber': 9}})
        assert resolve_page_number(ann) == 9

    def test_position_page_before_bounding_rect(self):
        ann = parse_annotation(
            {'position': {'pageNumber': 2, 'boundingRect': {'pageNumber': 5}, 'rects': [{'pageNumber': 7}]}}
        )
        assert resolve_page_number(ann) == 2

    def test_bounding_rect_before_rects(self):
        ann = parse_annotation({'position': {'boundingRect': {'pageNumber': 5}, 'rects': [{'pageNumber': 7}]}})
        assert resolve_page_number(ann) == 5

    def test_first_defined_rect_page(self):
        ann = parse_annotation({'position': {'rects': [{'top': 1}, {'pageNumber': 7}, {'pageNumber': 8}]}})
        assert resolve_page_number(ann) == 7

    def test_highlight_spanning_pages_takes_first_rect_page(self):
        ann = parse_annotation({'position': {'rects': [{'pageNumber': 3}, {'pageNumber': 4}]}})
        assert resolve_page_number(ann) == 3

    @pytest.mark.parametrize(
        'position',
        [
            None,
            'garbage',
            {'pageNumber': '3'},
            {'pageNumber': True},
            {'pageNumber': 2.5},
            {'pageNumber': float('nan')},
            {'boundingRect': 'x', 'rects': 'not-a-list'},
            {'rects': [None, 3, 'x']},
        ],
    )
    def test_malformed_position_is_unassigned(self, position):
        ann = parse_annotation({'id': 'a', 'position': position})
        assert resolve_page_number(ann) is None

    def test_integral_float_page_is_accepted(self):
        ann = parse_annotation({'position': {'pageNumber': 6.0}})
        assert resolve_page_number(ann) == 6

    def test_none_annotation(self):
        assert resolve_page_number(None) is None


class TestNormalizedTop:
    """Normalized top edge of a single rect."""

    def test_unit_y1_used_directly(self):
        assert normalized_top(Rect(y1=0.25, top=900, height=1000)) == 0.25

    def test_pixel_y1_falls_through_to_ratio(self):
        assert normalized_top(Rect(y1=250, top=300, height=1000)) == pytest.approx(0.3)

    def test_ratio_from_top_and_height(self):
        assert normalized_top(Rect(top=500, height=1000)) == pytest.approx(0.5)

    def test_ratio_is_clamped(self):
        assert normalized_top(Rect(top=1500, height=1000)) == 1.0

    def test_raw_unit_top_without_height(self):
        assert normalized_top(Rect(top=0.7, height=0)) == pytest.approx(0.7)

    def test_top_above_one_without_height_is_unresolved(self):
        assert normalized_top(Rect(top=1.2)) is None

    def test_empty_rect(self):
        assert normalized_top(Rect()) is None
        assert normalized_top(None) is None


class TestResolveVerticalOffset:
    """Precedence and clamping of vertical offset resolution."""

    def test_top_level_relative_y_wins(self):
        ann = parse_annotation(
            {
                'kind': 'screenshot',
                'pageRelativeY': 0.1,
                'screenshot': {'pageRelativeY': 0.9},
                'position': {'boundingRect': {'y1': 0.5}},
            }
        )
        assert resolve_vertical_offset(ann) == pytest.approx(0.1)

    def test_top_level_relative_y_is_clamped(self):
        ann = parse_annotation({'pageRelativeY': 1.5})
        assert resolve_vertical_offset(ann) == 1.0
        ann = parse_annotation({'pageRelativeY': -0.2})
        assert resolve_vertical_offset(ann) == 0.0

    def test_non_finite_relative_y_is_ignored(self):
        ann = parse_annotation({'pageRelativeY': float('inf'), 'position': {'boundingRect': {'y1': 0.4}}})
        assert resolve_vertical_offset(ann) == pytest.approx(0.4)

    def test_screenshot_relative_y(self):
        ann = parse_annotation({'kind': 'screenshot', 'screenshot': {'pageRelativeY': 0.4}})
        assert resolve_vertical_offset(ann) == pytest.approx(0.4)

    def test_text_annotation_ignores_screenshot_field(self):
        ann = parse_annotation({'kind': 'text', 'screenshot': {'pageRelativeY': 0.4}})
        assert resolve_vertical_offset(ann) is None

    def test_topmost_rect_wins(self):
        ann = parse_annotation(
            {
                'position': {
                    'boundingRect': {'top': 500, 'height': 1000},
                    'rects': [{'y1': 0.3}, {'top': 200, 'height': 1000}, {'top': 5}],
                }
            }
        )
        assert resolve_vertical_offset(ann) == pytest.approx(0.2)

    def test_no_position_data(self):
        assert resolve_vertical_offset(parse_annotation({'id': 'a'})) is None
        assert resolve_vertical_offset(None) is None

    def test_always_within_unit_interval(self):
        rows = [
            {'pageRelativeY': 42},
            {'kind': 'screenshot', 'screenshot': {'pageRelativeY': -3}},
            {'position': {'rects': [{'top': 9000, 'height': 10}]}},
            {'position': {'boundingRect': {'top': 0.5}}},
        ]
        for row in rows:
            value = resolve_vertical_offset(parse_annotation(row))
            assert value is not None
            assert 0.0 <= value <= 1.0
