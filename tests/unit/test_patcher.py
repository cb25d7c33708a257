"""Unit tests for the patcher module."""

import pytest

from pipeflow.intents import (
    AddAttribute,
    AddForward,
    AddParameter,
    AddParameterAttribute,
    AddPipe,
    ChangeAttribute,
    ChangeType,
    DeleteAttribute,
    DeleteForward,
    DeleteParameter,
    Move,
    MoveExit,
    Rename,
)
from pipeflow.parser import ParseError
from pipeflow.patcher import TextPatcher, format_coordinate

PARAMS_DOC = """<Pipeline>
    <XsltPipe name="Render" styleSheetName="render.xsl" x="1" y="2">
        <Param name="mode" value="full"/>
        <Forward name="success" path="Exit"/>
    </XsltPipe>
    <EchoPipe name="Plain"/>
</Pipeline>
"""


class TestRename:
    """Tests for TextPatcher.rename()."""

    def test_rename_scenario(self, patcher, scenario_doc):
        """Test that the pipe and firstPipe are renamed, nothing else."""
        result = patcher.rename(scenario_doc, "P1", "Step1")
        assert result.changed
        assert result.text == scenario_doc.replace("P1", "Step1")

    def test_forwards_follow(self, patcher, orders_doc):
        """Test that forwards pointing at the pipe are rewritten."""
        result = patcher.rename(orders_doc, "Transform", "Convert")
        assert result.text == orders_doc.replace('"Transform"', '"Convert"')

    def test_forward_without_path_follows(self, patcher):
        """Test a forward whose name is its target."""
        text = (
            '<Pipeline><EchoPipe name="a"><Forward name="b"/></EchoPipe>'
            '<EchoPipe name="b"/></Pipeline>'
        )
        assert patcher.rename(text, "b", "c").text == text.replace('"b"', '"c"')

    def test_unknown_name_is_noop(self, patcher, scenario_doc):
        """Test that renaming a missing pipe leaves the text alone."""
        result = patcher.rename(scenario_doc, "Nope", "Other")
        assert not result.changed
        assert result.text == scenario_doc

    def test_empty_or_same_name_is_noop(self, patcher, scenario_doc):
        """Test that empty and identical new names are ignored."""
        assert not patcher.rename(scenario_doc, "P1", "").changed
        assert not patcher.rename(scenario_doc, "P1", "P1").changed

    def test_taken_name_is_noop(self, patcher, orders_doc):
        """Test that a rename onto an existing pipe name is refused."""
        assert not patcher.rename(orders_doc, "Validate", "Transform").changed

    def test_exit_path_not_renamed(self, patcher, scenario_doc):
        """Test that only pipes are renamed, not exits."""
        assert not patcher.rename(scenario_doc, "Exit", "Done").changed


class TestMove:
    """Tests for TextPatcher.move() and move_exit()."""

    def test_replace_existing_coordinates(self, patcher, scenario_doc):
        """Test that existing x and y are replaced in place."""
        result = patcher.move(scenario_doc, "P1", 50, 60)
        assert result.text == scenario_doc.replace('x="10" y="10"', 'x="50" y="60"')

    def test_insert_missing_coordinates(self, patcher):
        """Test that missing coordinates are inserted before />."""
        text = '<Pipeline><EchoPipe name="a"/></Pipeline>'
        expected = '<Pipeline><EchoPipe name="a" x="5" y="6"/></Pipeline>'
        assert patcher.move(text, "a", 5, 6).text == expected

    def test_insert_only_missing_coordinate(self, patcher):
        """Test that a lone x is replaced and y is added."""
        text = '<Pipeline><EchoPipe name="a" x="1"></EchoPipe></Pipeline>'
        expected = '<Pipeline><EchoPipe name="a" x="5" y="6"></EchoPipe></Pipeline>'
        assert patcher.move(text, "a", 5, 6).text == expected

    def test_coordinates_formatted_as_integers(self, patcher, scenario_doc):
        """Test that floats and px strings become integers."""
        result = patcher.move(scenario_doc, "P1", 50.4, "60px")
        assert 'x="50" y="60"' in result.text

    def test_invalid_coordinates_are_noop(self, patcher, scenario_doc):
        """Test that non-numeric coordinates leave the text alone."""
        assert not patcher.move(scenario_doc, "P1", "left", 3).changed

    def test_move_receiver(self, patcher, orders_doc):
        """Test moving the receiver by its display name."""
        result = patcher.move(orders_doc, "(receiver): OrdersReceiver", 10, 20)
        assert result.text == orders_doc.replace(
            '<Receiver name="OrdersReceiver" x="600" y="400">',
            '<Receiver name="OrdersReceiver" x="10" y="20">',
        )

    def test_same_position_twice(self, patcher, scenario_doc):
        """Test that repeating a move does not change the text again."""
        once = patcher.move(scenario_doc, "P1", 50, 60).text
        again = patcher.move(once, "P1", 50, 60)
        assert not again.changed
        assert again.text == once

    def test_move_exit(self, patcher, scenario_doc):
        """Test that exits are moved by path."""
        result = patcher.move_exit(scenario_doc, "Exit", 1, 2)
        assert '<Exit path="Exit" state="success" code="200" x="1" y="2"/>' in result.text

    def test_move_unknown_exit(self, patcher, scenario_doc):
        """Test that moving a missing exit is a no-op."""
        assert not patcher.move_exit(scenario_doc, "Nope", 1, 2).changed


class TestAddForward:
    """Tests for TextPatcher.add_forward()."""

    def test_own_line_with_indentation(self, patcher, orders_doc):
        """Test that the forward goes on its own line before the closing tag."""
        result = patcher.add_forward(orders_doc, "Transform", "Error")
        existing = '                <Forward name="success" path="Exit"/>\n'
        added = '                <Forward name="success" path="Error"/>\n'
        assert result.text == orders_doc.replace(
            existing + "            </XsltPipe>",
            existing + added + "            </XsltPipe>",
        )

    def test_inline(self, patcher, scenario_doc):
        """Test insertion when the closing tag shares its line."""
        result = patcher.add_forward(scenario_doc, "P1", "Other")
        assert result.text == scenario_doc.replace(
            "</FixedResultPipe>", '<Forward name="success" path="Other"/></FixedResultPipe>'
        )

    def test_expands_self_closing_pipe_inline(self, patcher):
        """Test that a self-closing pipe becomes a block."""
        text = '<Pipeline><EchoPipe name="a"/></Pipeline>'
        result = patcher.add_forward(text, "a", "Exit")
        assert result.text == (
            '<Pipeline><EchoPipe name="a"><Forward name="success" path="Exit"/></EchoPipe>'
            "</Pipeline>"
        )

    def test_expands_self_closing_pipe_on_own_line(self, patcher, unplaced_doc):
        """Test block expansion keeps the document's indentation style."""
        result = patcher.add_forward(unplaced_doc, "First", "Second")
        assert result.text == unplaced_doc.replace(
            '            <EchoPipe name="First"/>\n',
            '            <EchoPipe name="First">\n'
            '                <Forward name="success" path="Second"/>\n'
            "            </EchoPipe>\n",
        )

    def test_custom_forward_name(self, patcher, scenario_doc):
        """Test a forward name other than success."""
        result = patcher.add_forward(scenario_doc, "P1", "Other", "failure")
        assert '<Forward name="failure" path="Other"/>' in result.text

    def test_existing_path_is_noop(self, patcher, scenario_doc):
        """Test that a second forward to the same target is not added."""
        assert not patcher.add_forward(scenario_doc, "P1", "Exit").changed

    def test_unknown_pipe_is_noop(self, patcher, scenario_doc):
        """Test that adding to a missing pipe leaves the text alone."""
        assert not patcher.add_forward(scenario_doc, "Nope", "Exit").changed


class TestDeleteForward:
    """Tests for TextPatcher.delete_forward()."""

    def test_removes_whole_line(self, patcher, orders_doc):
        """Test that a forward alone on its line takes the line with it."""
        result = patcher.delete_forward(orders_doc, "Validate", "Error")
        assert result.text == orders_doc.replace(
            '                <Forward name="failure" path="Error"/>\n', ""
        )

    @pytest.mark.parametrize("target", ["Exit", "exit", "EXIT"])
    def test_case_insensitive_path(self, patcher, scenario_doc, target):
        """Test that any casing of the path removes the same forward."""
        result = patcher.delete_forward(scenario_doc, "P1", target)
        assert result.text == scenario_doc.replace('<Forward name="success" path="Exit"/>', "")

    def test_only_within_pipe(self, patcher, orders_doc):
        """Test that forwards of other pipes are untouched."""
        assert not patcher.delete_forward(orders_doc, "Validate", "Exit").changed

    def test_twice_is_noop(self, patcher, scenario_doc):
        """Test that deleting again does nothing."""
        once = patcher.delete_forward(scenario_doc, "P1", "Exit").text
        assert not patcher.delete_forward(once, "P1", "Exit").changed


class TestAddPipe:
    """Tests for TextPatcher.add_pipe()."""

    def test_before_pipeline_close(self, patcher, orders_doc):
        """Test that the new block goes right before </Pipeline>."""
        result = patcher.add_pipe(orders_doc, "New", 300, 400)
        assert result.text == orders_doc.replace(
            "        </Pipeline>",
            '            <newPipe name="New" x="300" y="400"></newPipe>\n        </Pipeline>',
        )

    def test_inline(self, patcher, scenario_doc):
        """Test insertion into a one-line document."""
        result = patcher.add_pipe(scenario_doc, "New", 1, 2)
        assert result.text == scenario_doc.replace(
            "</Pipeline>", '<newPipe name="New" x="1" y="2"></newPipe></Pipeline>'
        )

    def test_custom_type(self, patcher, scenario_doc):
        """Test an explicit pipe type."""
        result = patcher.add_pipe(scenario_doc, "New", 1, 2, "EchoPipe")
        assert '<EchoPipe name="New" x="1" y="2"></EchoPipe>' in result.text

    def test_existing_name_is_noop(self, patcher, scenario_doc):
        """Test that a pipe name is not added twice."""
        assert not patcher.add_pipe(scenario_doc, "P1", 1, 2).changed

    def test_no_pipeline_is_noop(self, patcher):
        """Test a document without a closed pipeline."""
        assert not patcher.add_pipe('<Adapter name="A"/>', "New", 1, 2).changed


class TestChangeType:
    """Tests for TextPatcher.change_type()."""

    def test_renames_both_tags(self, patcher, scenario_doc):
        """Test that opening and closing tags are renamed."""
        result = patcher.change_type(scenario_doc, "P1", "XsltPipe")
        assert result.text == scenario_doc.replace("FixedResultPipe", "XsltPipe")

    def test_class_name_is_shortened(self, patcher, scenario_doc):
        """Test that a class name is reduced to its pipe type."""
        result = patcher.change_type(scenario_doc, "P1", "nl.x.Echo")
        assert "<EchoPipe " in result.text
        assert "</EchoPipe>" in result.text

    def test_self_closing(self, patcher):
        """Test a pipe without closing tag."""
        text = '<Pipeline><EchoPipe name="a"/></Pipeline>'
        result = patcher.change_type(text, "a", "XsltPipe")
        assert result.text == text.replace("EchoPipe", "XsltPipe")


class TestAttributes:
    """Tests for reading and editing pipe attributes."""

    def test_get_attributes(self, patcher):
        """Test that the opening tag's attributes come back in order."""
        assert patcher.get_attributes(PARAMS_DOC, "Render") == {
            "name": "Render",
            "styleSheetName": "render.xsl",
            "x": "1",
            "y": "2",
        }
        assert patcher.get_attributes(PARAMS_DOC, "Nope") == {}

    def test_change_attribute(self, patcher):
        """Test that only the value is rewritten."""
        result = patcher.change_attribute(PARAMS_DOC, "Render", "styleSheetName", "other.xsl")
        assert result.text == PARAMS_DOC.replace("render.xsl", "other.xsl")

    def test_change_missing_attribute_is_noop(self, patcher):
        """Test that a value is not changed on an attribute that is not there."""
        assert not patcher.change_attribute(PARAMS_DOC, "Plain", "styleSheetName", "a").changed

    def test_add_attribute(self, patcher):
        """Test that a new attribute goes right before the tag terminator."""
        result = patcher.add_attribute(PARAMS_DOC, "Plain", "active", "false")
        assert result.text == PARAMS_DOC.replace(
            '<EchoPipe name="Plain"/>', '<EchoPipe name="Plain" active="false"/>'
        )

    def test_add_attribute_empty_value(self, patcher):
        """Test the default empty value."""
        result = patcher.add_attribute(PARAMS_DOC, "Render", "skipEmptyTags")
        assert 'y="2" skipEmptyTags="">' in result.text

    def test_add_existing_attribute_is_noop(self, patcher):
        """Test that an attribute is not added twice."""
        assert not patcher.add_attribute(PARAMS_DOC, "Render", "x", "5").changed

    def test_delete_attribute(self, patcher):
        """Test that the attribute and its leading space are removed."""
        result = patcher.delete_attribute(PARAMS_DOC, "Render", "styleSheetName")
        assert result.text == PARAMS_DOC.replace(' styleSheetName="render.xsl"', "")

    def test_delete_name_is_noop(self, patcher):
        """Test that a pipe keeps its name."""
        assert not patcher.delete_attribute(PARAMS_DOC, "Render", "name").changed

    def test_delete_missing_attribute_is_noop(self, patcher):
        """Test deleting an attribute that is not there."""
        assert not patcher.delete_attribute(PARAMS_DOC, "Plain", "x").changed


class TestParameters:
    """Tests for reading and editing Param children."""

    def test_get_parameters(self, patcher):
        """Test that every Param comes back as a dict."""
        assert patcher.get_parameters(PARAMS_DOC, "Render") == [{"name": "mode", "value": "full"}]
        assert patcher.get_parameters(PARAMS_DOC, "Plain") == []

    def test_add_after_last_parameter(self, patcher):
        """Test that a new parameter follows the existing ones on its own line."""
        result = patcher.add_parameter(PARAMS_DOC, "Render", "level", "3")
        existing = '        <Param name="mode" value="full"/>\n'
        assert result.text == PARAMS_DOC.replace(
            existing, existing + '        <Param name="level" value="3"/>\n'
        )

    def test_add_to_self_closing_pipe(self, patcher):
        """Test that a self-closing pipe is expanded for its first parameter."""
        result = patcher.add_parameter(PARAMS_DOC, "Plain", "level")
        assert result.text == PARAMS_DOC.replace(
            '    <EchoPipe name="Plain"/>\n',
            '    <EchoPipe name="Plain">\n'
            '        <Param name="level"/>\n'
            "    </EchoPipe>\n",
        )

    def test_add_existing_parameter_is_noop(self, patcher):
        """Test that a parameter name is not added twice."""
        assert not patcher.add_parameter(PARAMS_DOC, "Render", "mode").changed

    def test_add_parameter_attribute(self, patcher):
        """Test adding an attribute to one parameter."""
        result = patcher.add_parameter_attribute(PARAMS_DOC, "Render", "mode", "sessionKey", "k")
        assert result.text == PARAMS_DOC.replace(
            '<Param name="mode" value="full"/>', '<Param name="mode" value="full" sessionKey="k"/>'
        )

    def test_add_attribute_to_missing_parameter_is_noop(self, patcher):
        """Test that an unknown parameter is left alone."""
        result = patcher.add_parameter_attribute(PARAMS_DOC, "Render", "nope", "sessionKey")
        assert not result.changed

    def test_delete_parameter(self, patcher):
        """Test that a parameter alone on its line takes the line with it."""
        result = patcher.delete_parameter(PARAMS_DOC, "Render", "mode")
        assert result.text == PARAMS_DOC.replace('        <Param name="mode" value="full"/>\n', "")

    def test_delete_missing_parameter_is_noop(self, patcher):
        """Test deleting a parameter that is not there."""
        assert not patcher.delete_parameter(PARAMS_DOC, "Plain", "mode").changed


class TestUnsafeValues:
    """Tests for names and values that cannot be written into markup."""

    def test_rename_with_quote(self, patcher, scenario_doc):
        """Test that a new name containing a quote is refused."""
        assert not patcher.rename(scenario_doc, "P1", 'Step"1').changed

    def test_forward_with_quote(self, patcher, scenario_doc):
        """Test that a target or forward name containing a quote is refused."""
        assert not patcher.add_forward(scenario_doc, "P1", 'Oth"er').changed
        assert not patcher.add_forward(scenario_doc, "P1", "Other", 'fail"ure').changed

    def test_pipe_with_quote_or_bad_type(self, patcher, scenario_doc):
        """Test that add_pipe refuses names and types that break the tag."""
        assert not patcher.add_pipe(scenario_doc, 'Ne"w', 1, 2).changed
        assert not patcher.add_pipe(scenario_doc, "New", 1, 2, "Bad Pipe").changed

    def test_change_type_with_quote(self, patcher, scenario_doc):
        """Test that a type that is not a tag name is refused."""
        assert not patcher.change_type(scenario_doc, "P1", 'Xslt"Pipe').changed

    def test_attribute_values(self, patcher):
        """Test that attribute edits refuse quotes and bad names."""
        assert not patcher.change_attribute(PARAMS_DOC, "Render", "x", '1"').changed
        assert not patcher.add_attribute(PARAMS_DOC, "Plain", "bad name").changed
        assert not patcher.add_attribute(PARAMS_DOC, "Plain", "ok", 'a"b').changed
        assert not patcher.add_parameter(PARAMS_DOC, "Plain", 'le"vel').changed


class TestScopeAndDispatch:
    """Tests for adapter scoping, apply() and helpers."""

    def test_scoped_to_adapter(self, two_adapters_doc):
        """Test that edits stay inside the selected adapter."""
        result = TextPatcher(adapter_name="Beta").move(two_adapters_doc, "Shared", 1, 2)
        assert result.text == two_adapters_doc.replace('x="300" y="300"', 'x="1" y="2"')

    def test_unscoped_hits_first(self, patcher, two_adapters_doc):
        """Test that without a scope the first match is edited."""
        result = patcher.move(two_adapters_doc, "Shared", 1, 2)
        assert result.text == two_adapters_doc.replace('x="100" y="100"', 'x="1" y="2"')

    def test_scoped_rename(self, two_adapters_doc):
        """Test that a scoped rename leaves the other adapter alone."""
        result = TextPatcher(adapter_name="Beta").rename(two_adapters_doc, "Shared", "Own")
        assert result.text.count('name="Shared"') == 1
        assert result.text.index('name="Own"') > result.text.index('name="Beta"')

    def test_find_pipe_span(self, patcher, scenario_doc):
        """Test the span of a whole pipe block."""
        start, end = patcher.find_pipe_span(scenario_doc, "P1")
        assert scenario_doc[start:end].startswith('<FixedResultPipe name="P1"')
        assert scenario_doc[start:end].endswith("</FixedResultPipe>")
        assert patcher.find_pipe_span(scenario_doc, "Nope") is None

    @pytest.mark.parametrize(
        "intent",
        [
            Rename("P1", "Step1"),
            Move("P1", 50, 60),
            MoveExit("Exit", 5, 5),
            AddForward("P1", "Other"),
            DeleteForward("P1", "Exit"),
            AddPipe("New", 1, 2),
            ChangeType("P1", "XsltPipe"),
        ],
    )
    def test_apply_dispatches(self, patcher, scenario_doc, intent):
        """Test that every intent type changes the scenario document."""
        assert patcher.apply(scenario_doc, intent).changed

    @pytest.mark.parametrize(
        "intent",
        [
            ChangeAttribute("Render", "styleSheetName", "other.xsl"),
            AddAttribute("Plain", "active", "false"),
            DeleteAttribute("Render", "styleSheetName"),
            AddParameter("Render", "level"),
            AddParameterAttribute("Render", "mode", "sessionKey"),
            DeleteParameter("Render", "mode"),
        ],
    )
    def test_apply_dispatches_attribute_intents(self, patcher, intent):
        """Test that every attribute and parameter intent changes the document."""
        assert patcher.apply(PARAMS_DOC, intent).changed

    def test_apply_unknown_intent(self, patcher, scenario_doc):
        """Test that an unsupported object is rejected."""
        with pytest.raises(TypeError):
            patcher.apply(scenario_doc, "rename")

    def test_non_string_raises(self, patcher):
        """Test that non-text input raises ParseError."""
        with pytest.raises(ParseError):
            patcher.move(None, "P1", 1, 2)

    def test_format_coordinate(self):
        """Test coordinate formatting."""
        assert format_coordinate(12.5) == "12"
        assert format_coordinate("7px") == "7"
        assert format_coordinate(None) is None
        assert format_coordinate("x") is None
