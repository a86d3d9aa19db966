"""Unit tests for graphsmith.core.links."""

import pytest

from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.links import build_link_table, parse_link
from graphsmith.core.models import Link


class TestParseLink:
    """Tests for single link entry parsing."""

    def test_six_tuple(self):
        link = parse_link([4, 11, 0, 7, 0, "CLIP"])
        assert link == Link(
            id=4, source_node_id=11, source_slot=0, target_node_id=7, target_slot=0, type="CLIP"
        )

    def test_five_tuple_has_unknown_type(self):
        assert parse_link([4, 11, 0, 7, 0]).type == "unknown"

    def test_object_form(self):
        """Newer editors write links as objects."""
        link = parse_link(
            {
                "id": 9,
                "origin_id": 31,
                "origin_slot": 0,
                "target_id": 8,
                "target_slot": 0,
                "type": "LATENT",
            }
        )
        assert link.source_node_id == 31
        assert link.target_node_id == 8
        assert link.type == "LATENT"

    def test_numeric_strings_accepted(self):
        assert parse_link(["4", "11", "0", "7", "0", "CLIP"]).id == 4

    @pytest.mark.parametrize(
        "entry",
        [
            [1, 2, 3],
            "1,2,3,4,5",
            [1, None, 0, 2, 0, "X"],
            [1, True, 0, 2, 0, "X"],
            [1, 2.5, 0, 2, 0, "X"],
        ],
    )
    def test_malformed_entries_rejected(self, entry):
        with pytest.raises(ValueError):
            parse_link(entry)


class TestBuildLinkTable:
    """Tests for link table construction."""

    def test_indexes_by_id(self, flux_workflow):
        table = build_link_table(flux_workflow["links"])
        assert len(table) == 12
        assert table[7].source_node_id == 26
        assert table[7].target_slot == 1

    def test_malformed_entry_skipped_and_recorded(self):
        diagnostics = Diagnostics()
        table = build_link_table([[1, 2, 0, 3, 0, "X"], ["bad"]], diagnostics)

        assert list(table) == [1]
        assert len(diagnostics.issues) == 1
        assert "Skipping link #1" in diagnostics.issues[0]

    def test_duplicate_id_keeps_last(self):
        diagnostics = Diagnostics()
        table = build_link_table([[1, 2, 0, 3, 0, "X"], [1, 5, 1, 3, 0, "Y"]], diagnostics)

        assert table[1].source_node_id == 5
        assert any("Duplicate link id 1" in n for n in diagnostics.notes)

    def test_empty_and_none(self):
        assert build_link_table([]) == {}
        assert build_link_table(None) == {}
