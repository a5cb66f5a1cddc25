"""Tests for the streaming tool-call parser."""

import pytest

from core.assistant_message import AssistantMessageParser, TextContent, ToolUse
from core.errors import ParserLimitError


TOOLS = ["read_file", "write_file", "echo", "attempt_completion"]
PARAMS = ["path", "content", "message", "result"]


def _parse(chunks, tools=TOOLS, params=PARAMS, **kwargs):
    parser = AssistantMessageParser(tools, params, **kwargs)
    for chunk in chunks:
        parser.process_chunk(chunk)
    parser.finalize_content_blocks()
    return parser


def _shape(blocks):
    shaped = []
    for block in blocks:
        if isinstance(block, TextContent):
            shaped.append(("text", block.content, block.partial))
        else:
            shaped.append(("tool", block.name, dict(block.params), block.partial))
    return shaped


MESSAGE = (
    "I'll look at the file first.\n\n"
    "<read_file>\n<path>src/app.py</path>\n</read_file>\n"
    "Then write the notes.\n"
    "<write_file>\n<path>notes.md</path>\n<content>\n# Notes\n\n- item\n</content>\n</write_file>"
)


@pytest.mark.parametrize("size", [1, 2, 3, 5, 8, 13, 64])
def test_chunking_does_not_change_blocks(size):
    whole = _parse([MESSAGE])
    chunks = [MESSAGE[i:i + size] for i in range(0, len(MESSAGE), size)]
    chunked = _parse(chunks)

    assert _shape(chunked.get_content_blocks()) == _shape(whole.get_content_blocks())


def test_uneven_chunk_boundaries_inside_tags():
    chunks = ["Hi <rea", "d_fi", "le><pa", "th>a.txt</p", "ath></read", "_file>"]
    parser = _parse(chunks)

    assert _shape(parser.get_content_blocks()) == [
        ("text", "Hi", False),
        ("tool", "read_file", {"path": "a.txt"}, False),
    ]


def test_parses_text_and_tool_blocks():
    parser = _parse([MESSAGE])
    blocks = parser.get_content_blocks()

    assert [b.type for b in blocks] == ["text", "tool_use", "text", "tool_use"]
    assert blocks[0].content == "I'll look at the file first."
    assert blocks[1].params == {"path": "src/app.py"}
    assert blocks[2].content == "Then write the notes."
    assert blocks[3].params == {"path": "notes.md", "content": "# Notes\n\n- item"}
    assert all(not b.partial for b in blocks)


def test_unregistered_tags_stay_text():
    parser = _parse(["<foo>bar</foo>"], tools=["echo"], params=["message"])
    blocks = parser.get_content_blocks()

    assert len(blocks) == 1
    assert isinstance(blocks[0], TextContent)
    assert blocks[0].content == "<foo>bar</foo>"


def test_parameter_keeps_inner_newlines():
    parser = _parse(["<t><p>hello\nworld</p></t>"], tools=["t"], params=["p"])
    blocks = parser.get_content_blocks()

    assert len(blocks) == 1
    assert isinstance(blocks[0], ToolUse)
    assert blocks[0].name == "t"
    assert blocks[0].params == {"p": "hello\nworld"}
    assert blocks[0].partial is False


def test_content_param_trims_single_newlines_only():
    parser = _parse(["<write_file><path> a.txt </path><content>\n\n  indented\n\n</content></write_file>"])
    tool = parser.get_tool_uses()[0]

    assert tool.params["path"] == "a.txt"
    assert tool.params["content"] == "\n  indented\n"


def test_write_file_content_may_contain_closing_tag():
    text = (
        "<write_file><path>doc.xml</path><content>\n"
        "before</content>after\n"
        "</content></write_file>"
    )
    parser = _parse([text])
    tool = parser.get_tool_uses()[0]

    assert tool.params["content"] == "before</content>after"
    assert tool.partial is False


def test_partial_tool_while_streaming():
    parser = AssistantMessageParser(TOOLS, PARAMS)
    blocks = parser.process_chunk("Reading <read_file><path>src/ma")

    assert blocks[0].content == "Reading"
    assert blocks[0].partial is False
    tool = blocks[1]
    assert tool.partial is True
    assert tool.params == {"path": "src/ma"}

    blocks = parser.process_chunk("in.py</path></read_file>")
    assert blocks[1].params == {"path": "src/main.py"}
    assert blocks[1].partial is False


def test_only_last_block_is_partial():
    parser = AssistantMessageParser(TOOLS, PARAMS)
    blocks = parser.process_chunk("One <echo><message>x</message></echo> two <echo><mess")

    partial = [b for b in blocks if b.partial]
    assert partial == [blocks[-1]]


def test_unclosed_tool_is_finalized():
    parser = _parse(["<echo><message>hi"])
    tool = parser.get_tool_uses()[0]

    assert tool.partial is False
    assert tool.params == {"message": "hi"}


def test_accumulator_ceiling_raises():
    parser = AssistantMessageParser(TOOLS, PARAMS, max_accumulator_size=10)
    parser.process_chunk("0123456789")

    with pytest.raises(ParserLimitError):
        parser.process_chunk("x")


def test_oversized_parameter_is_dropped():
    parser = _parse(
        ["<echo><message>abcdefghij</message><path>ok</path></echo>"],
        max_param_length=5,
    )
    tool = parser.get_tool_uses()[0]

    assert "message" not in tool.params
    assert tool.params["path"] == "ok"
    assert tool.partial is False


@pytest.mark.parametrize("value", ["ab", "abcde"])
def test_parameter_within_limit_survives_its_closing_tag(value):
    message = f"<echo><message>{value}</message></echo>"
    whole = _parse([message], max_param_length=5)
    by_char = _parse(list(message), max_param_length=5)

    for parser in (whole, by_char):
        tool = parser.get_tool_uses()[0]
        assert tool.params == {"message": value}
        assert tool.partial is False


def test_display_text_skips_tool_markup():
    parser = _parse([MESSAGE])

    assert parser.get_display_text() == "I'll look at the file first.\n\nThen write the notes."


def test_reset_clears_state():
    parser = _parse([MESSAGE])
    parser.reset()

    assert parser.get_content_blocks() == []
    assert parser.accumulated_text == ""


def test_ensure_id_is_stable():
    tool = ToolUse(name="echo")
    first = tool.ensure_id()

    assert first.startswith("call_")
    assert tool.ensure_id() == first
