"""
Tests for the program model, the wire loader and the palette.
"""
import random

import pytest

from kidscode_engine.program import (
    Block,
    OperationKind,
    Program,
    ProgramFormatError,
    create_block,
    get_template,
    load_program,
    normalize_kind,
)
from kidscode_engine.program.palette import CATEGORIES, templates_by_category


class TestProgram:
    """Tests for Program lookups."""

    def test_start_blocks_in_declaration_order(self):
        """Start blocks come back in the order they were declared."""
        program = Program([
            Block(id="a", operation_kind="start"),
            Block(id="m", operation_kind="moveUp"),
            Block(id="b", operation_kind="start"),
        ])

        assert [block.id for block in program.start_blocks()] == ["a", "b"]

    def test_next_resolves_link(self):
        """next() follows the next pointer."""
        first = Block(id=1, operation_kind="start", next=2)
        second = Block(id=2, operation_kind="moveUp")
        program = Program([first, second])

        assert program.next(first) is second
        assert program.next(second) is None

    def test_dangling_next_is_end_of_chain(self):
        """A next id with no block behaves like the end of the chain."""
        block = Block(id="a", operation_kind="start", next="missing")
        program = Program([block])

        assert program.next(block) is None

    def test_find_by_id_none(self):
        program = Program([Block(id="a", operation_kind="start")])
        assert program.find_by_id(None) is None

    def test_duplicate_id_first_wins(self):
        """The first block declared under an id shadows later ones."""
        program = Program([
            Block(id="a", operation_kind="start"),
            Block(id="a", operation_kind="moveUp"),
        ])

        assert len(program) == 1
        assert program.find_by_id("a").operation_kind == "start"

    def test_block_parameter_default_on_null(self):
        """parameter() falls back to the default for missing or null values."""
        block = Block(id="s", operation_kind="say", parameters={"message": None})

        assert block.parameter("message", "Hello!") == "Hello!"
        assert block.parameter("other", 3) == 3

    def test_container_kinds(self):
        assert Block(id=1, operation_kind="repeatCount").is_container
        assert Block(id=2, operation_kind="repeatForever").is_container
        assert not Block(id=3, operation_kind="moveUp").is_container


class TestNormalizeKind:
    """Tests for studio type name aliases."""

    def test_studio_names_map_to_canonical(self):
        assert normalize_kind("events_when_start") == "start"
        assert normalize_kind("motion_move_steps") == "moveSteps"
        assert normalize_kind("control_repeat") == "repeatCount"
        assert normalize_kind("control_forever") == "repeatForever"

    def test_enum_member(self):
        assert normalize_kind(OperationKind.GOTO_XY) == "gotoXY"

    def test_unknown_passes_through(self):
        assert normalize_kind("sound_play") == "sound_play"


class TestLoadProgram:
    """Tests for loading the studio wire format."""

    def test_load_flat_list(self):
        """A list of blocks with canonical kinds loads as-is."""
        program = load_program([
            {"id": "s", "type": "start", "next": "m"},
            {"id": "m", "type": "moveUp"},
        ])

        assert len(program) == 2
        assert program.next(program.find_by_id("s")).operation_kind == "moveUp"

    def test_load_blocks_object(self):
        program = load_program({"blocks": [{"id": 1, "operationKind": "start"}]})
        assert program.find_by_id(1).operation_kind == "start"

    def test_unknown_fields_are_ignored(self):
        """Studio-only fields such as colour and position do not fail loading."""
        program = load_program([
            {"id": "s", "type": "start", "color": "#ffab19", "x": 40, "y": 12},
        ])

        assert program.find_by_id("s").operation_kind == "start"

    def test_nested_children_are_reachable(self):
        """Inlined loop bodies are flattened so find_by_id sees them."""
        program = load_program([
            {
                "id": "events_when_start_aaaaaaa",
                "type": "events_when_start",
                "category": "events",
                "label": "When program starts",
                "properties": {},
                "children": [],
                "next": "control_repeat_bbbbbbb",
            },
            {
                "id": "control_repeat_bbbbbbb",
                "type": "control_repeat",
                "properties": {"times": 4},
                "children": [
                    {
                        "id": "motion_turn_right_ccccccc",
                        "type": "motion_turn_right",
                        "properties": {"degrees": 15},
                        "children": [],
                        "next": None,
                    }
                ],
                "next": None,
            },
        ])

        repeat = program.find_by_id("control_repeat_bbbbbbb")
        assert repeat.operation_kind == "repeatCount"
        assert repeat.children == ("motion_turn_right_ccccccc",)

        child = program.find_by_id("motion_turn_right_ccccccc")
        assert child is not None
        assert child.operation_kind == "turnRight"
        assert child.parameters == {"degrees": 15}

    def test_id_only_children(self):
        program = load_program([
            {"id": "r", "type": "repeatCount", "children": ["x"]},
            {"id": "x", "type": "hide"},
        ])
        assert program.find_by_id("r").children == ("x",)

    def test_parameters_alias(self):
        program = load_program([{"id": "g", "type": "gotoXY", "parameters": {"x": 3}}])
        assert program.find_by_id("g").parameters == {"x": 3}

    def test_missing_type_rejected(self):
        with pytest.raises(ProgramFormatError):
            load_program([{"id": "x"}])

    def test_empty_type_rejected(self):
        with pytest.raises(ProgramFormatError):
            load_program([{"id": "x", "type": ""}])

    def test_non_container_payload_rejected(self):
        with pytest.raises(ProgramFormatError):
            load_program("start")

    def test_format_error_is_value_error(self):
        assert issubclass(ProgramFormatError, ValueError)

    def test_round_trips_through_to_list(self):
        """to_list() output loads back into an equivalent program."""
        original = load_program([
            {"id": "s", "type": "start", "next": "r"},
            {"id": "r", "type": "repeatCount", "properties": {"times": 2}, "children": ["t"]},
            {"id": "t", "type": "turnLeft"},
        ])

        reloaded = load_program(original.to_list())

        assert reloaded.blocks == original.blocks


class TestPalette:
    """Tests for block templates."""

    def test_every_category_has_templates(self):
        grouped = templates_by_category()

        assert [category.id for category in CATEGORIES] == list(grouped)
        assert all(grouped[category.id] for category in CATEGORIES)

    def test_template_colors_follow_category(self):
        assert get_template("moveUp").color == "#4C97FF"
        assert get_template("looks_say").color == "#9966FF"
        assert get_template("control_repeat").color == "#FFAB19"

    def test_create_block_defaults(self):
        """New blocks carry the template's default parameters."""
        block = create_block("looks_say")

        assert block.operation_kind == "say"
        assert block.parameters == {"message": "Hello!"}
        assert block.category == "looks"
        assert block.children == ()
        assert block.next is None

    def test_create_block_id_shape(self):
        block = create_block("repeatCount", rng=random.Random(7))

        prefix, suffix = block.id.rsplit("_", 1)
        assert prefix == "repeatCount"
        assert len(suffix) == 7
        assert suffix.isalnum() and suffix == suffix.lower()

    def test_create_block_ids_are_unique(self):
        rng = random.Random(1)
        ids = {create_block("moveUp", rng=rng).id for _ in range(50)}
        assert len(ids) == 50

    def test_create_block_overrides(self):
        block = create_block("repeatCount", times=4)
        assert block.parameters == {"times": 4}

    def test_create_block_unknown_kind(self):
        with pytest.raises(KeyError):
            create_block("dance")
