"""
Unit tests for the Markdown renderer.

Run with: python -m pytest tests/test_markdown_export.py -v
"""

import pytest
from factories import screenshot_row, text_row

from annotexport.errors import EmptyInput
from annotexport.ordering import group_by_page, order_annotations
from annotexport.report.markdown_export import markdown_file_name, render_markdown
from annotexport.types import parse_annotations


def _groups(rows):
    return group_by_page(order_annotations(parse_annotations(rows)))


def _render(rows, file_name='paper.pdf') -> str:
    return render_markdown(_groups(rows), file_name).content.decode('utf-8')


class TestMarkdownLayout:
    """Headings, bullets and separators."""

    def test_multiline_text_bullet(self):
        output = _render([text_row('a', 'Hello\nWorld', page=1)])
        assert output == '# Annotations: paper.pdf\n\n## Page 1\n\n- Hello\n  World\n'

    def test_any_newline_convention_and_trimming(self):
        output = _render([text_row('a', '  one  \r\n  two\rthree ', page=1)])
        assert '- one\n  two\n  three\n' in output

    def test_empty_text_is_bare_bullet(self):
        output = _render([text_row('a', '   ', page=1), {'id': 'b', 'position': {'pageNumber': 1}}])
        assert output.endswith('## Page 1\n\n-\n\n-\n')

    def test_comment_block(self):
        output = _render([text_row('a', 'Hello', page=1, comment={'text': 'Nice\r\npoint'})])
        assert output.endswith('- Hello\n\n  Comment: Nice\n  point\n')

    def test_blank_comment_is_omitted(self):
        output = _render([text_row('a', 'Hello', page=1, comment={'text': '  '})])
        assert 'Comment:' not in output

    def test_groups_and_entries_separated_by_one_blank_line(self):
        output = _render(
            [
                text_row('a', 'alpha', page=2),
                text_row('b', 'beta', page=1, pageRelativeY=0.2),
                text_row('c', 'gamma', page=1, pageRelativeY=0.6),
                {'id': 'd', 'content': {'text': 'delta'}},
            ]
        )
        assert output == (
            '# Annotations: paper.pdf\n'
            '\n'
            '## Page 1\n'
            '\n'
            '- beta\n'
            '\n'
            '- gamma\n'
            '\n'
            '## Page 2\n'
            '\n'
            '- alpha\n'
            '\n'
            '## Unassigned\n'
            '\n'
            '- delta\n'
        )


class TestMarkdownScreenshots:
    """Embedded screenshot entries."""

    def test_screenshot_entry_embeds_data_url(self):
        url = 'data:image/png;base64,AAAA'
        output = _render([screenshot_row('s', url, page=1, comment={'text': 'see chart'})])
        assert output.endswith(
            '- Screenshot\n'
            f'  ![Screenshot 1]({url})\n'
            '\n'
            '  Comment: see chart\n'
        )

    def test_screenshot_counter_is_sequential(self):
        output = _render(
            [
                screenshot_row('s2', 'data:image/png;base64,BBBB', page=2),
                text_row('t', 'text', page=1),
                screenshot_row('s1', 'data:image/png;base64,AAAA', page=1, pageRelativeY=0.9),
            ]
        )
        assert output.index('![Screenshot 1](data:image/png;base64,AAAA)') < output.index(
            '![Screenshot 2](data:image/png;base64,BBBB)'
        )

    def test_screenshot_without_image(self):
        output = _render([{'id': 's', 'kind': 'screenshot', 'screenshot': {'pageNumber': 1}}])
        assert output.endswith('- Screenshot\n  _(image unavailable)_\n')

    def test_same_page_screenshots_keep_insertion_order(self):
        output = _render(
            [
                screenshot_row('first', 'data:image/png;base64,AAAA', page=3, comment={'text': 'first shot'}),
                screenshot_row('second', 'data:image/png;base64,BBBB', page=3, comment={'text': 'second shot'}),
            ]
        )
        assert output.index('Comment: first shot') < output.index('Comment: second shot')


class TestMarkdownArtifact:
    """Artifact naming, encoding and failure modes."""

    @pytest.mark.parametrize(
        'source, expected',
        [
            ('paper.pdf', 'annotations_paper.md'),
            ('archive.tar.gz', 'annotations_archive.tar.md'),
            ('notes', 'annotations_notes.md'),
            ('  spaced name.pdf ', 'annotations_spaced name.md'),
            ('', 'annotations_document.md'),
        ],
    )
    def test_file_name(self, source, expected):
        assert markdown_file_name(source) == expected

    def test_artifact_metadata(self):
        artifact = render_markdown(_groups([text_row('a', 'café', page=1)]), 'paper.pdf')
        assert artifact.file_name == 'annotations_paper.md'
        assert artifact.media_type.startswith('text/markdown')
        assert 'café'.encode('utf-8') in artifact.content

    def test_empty_input(self):
        with pytest.raises(EmptyInput) as excinfo:
            render_markdown([], 'paper.pdf')
        assert str(excinfo.value) == 'No highlights available to export'

    def test_idempotent(self):
        rows = [text_row('a', 'x', page=1), screenshot_row('s', 'data:image/png;base64,AAAA', page=2)]
        assert render_markdown(_groups(rows), 'p.pdf').content == render_markdown(_groups(rows), 'p.pdf').content
