"""Tests for record extraction from club pages."""

import pytest
from pydantic import ValidationError

from clubcrawl.common.lxml_page_element import LxmlPageElement
from clubcrawl.data_types import (
    ORGANIZATION_NAME_SENTINEL,
    PERSON_NAME_SENTINEL,
    PERSON_ROLE_SENTINEL,
    Record,
)
from clubcrawl.extractor import extract_organization, extract_records
from tests.mock_server import generate_club_html
from tests.utils import mock_club


def parse(text: str) -> LxmlPageElement:
    return LxmlPageElement.from_html(text, "https://clubs.example/club")


class TestExtractRecords:
    """Tests for extract_records over the mock directory's pages."""

    def test_one_record_per_person(self):
        """extract_records shall produce one Record per people row after the header."""
        records = extract_records(parse(generate_club_html(mock_club("1001"))), "1001")

        assert [(r.person_name, r.person_role) for r in records] == [
            ("Ana Pereira", "Presidenta"),
            ("Xosé Castro", "Secretario"),
        ]

    def test_organization_fields_shared(self):
        """All records of a page shall carry the same organization fields and team_count."""
        records = extract_records(parse(generate_club_html(mock_club("1004"))), "1004")

        assert len(records) == 2
        org_fields = {
            (
                r.link_id,
                r.organization_name,
                r.organization_email,
                r.organization_phone,
                r.organization_province,
                r.team_count,
            )
            for r in records
        }
        assert org_fields == {
            ("1004", "C.F. Vigo Norte", "vigonorte@example.org", None, "Pontevedra", 2)
        }

    def test_labels_are_stripped(self):
        """Organization values shall have their labels removed and be trimmed."""
        record = extract_records(parse(generate_club_html(mock_club("1001"))), "1001")[0]

        assert record.organization_name == "C.D. Lugo Atlético"
        assert record.organization_email == "info@lugoatletico.example"
        assert record.organization_phone == "982 000 001"
        assert record.organization_province == "Lugo"
        assert record.team_count == 3

    def test_empty_role_cell_gets_sentinel(self):
        """An empty role cell shall become the role sentinel."""
        record = extract_records(parse(generate_club_html(mock_club("1002"))), "1002")[0]

        assert record.person_name == "Marta Vidal"
        assert record.person_role == PERSON_ROLE_SENTINEL

    def test_empty_name_cell_gets_sentinel(self):
        """An empty name cell shall become the name sentinel."""
        record = extract_records(parse(generate_club_html(mock_club("1003"))), "1003")[0]

        assert record.person_name == PERSON_NAME_SENTINEL
        assert record.person_role == "Delegado"
        assert record.organization_email is None

    def test_club_without_people_yields_no_records(self):
        """A page whose people table has only a header shall yield no records."""
        assert extract_records(parse(generate_club_html(mock_club("1005"))), "1005") == []

    def test_page_without_tables_yields_no_records(self):
        """A page without striped tables shall yield an empty list, not an error."""
        page = parse("<html><body><h2>Club</h2><h5><strong>Email:</strong> a@b</h5></body></html>")

        assert extract_records(page, "9") == []

    def test_missing_cells_and_heading_get_sentinels(self):
        """Rows with missing cells and pages without an h2 shall use sentinels."""
        page = parse(
            """<html><body>
            <table class="table-striped"><tr><th>Name</th><th>Role</th></tr>
            <tr><td>Solo</td></tr>
            <tr></tr>
            </table></body></html>"""
        )

        records = extract_records(page, "7")

        assert [(r.person_name, r.person_role) for r in records] == [
            ("Solo", PERSON_ROLE_SENTINEL),
            (PERSON_NAME_SENTINEL, PERSON_ROLE_SENTINEL),
        ]
        assert records[0].organization_name == ORGANIZATION_NAME_SENTINEL

    def test_single_striped_table_is_teams_and_people(self):
        """With one striped table, team_count and people shall both come from it."""
        page = parse(
            """<html><body><h2>Club</h2>
            <table class="table table-striped">
              <tr><th>Name</th><th>Role</th></tr>
              <tr><td>A</td><td>Presidente</td></tr>
              <tr><td>B</td><td>Vogal</td></tr>
            </table></body></html>"""
        )

        records = extract_records(page, "8")

        assert [r.person_name for r in records] == ["A", "B"]
        assert {r.team_count for r in records} == {2}

    def test_text_is_whitespace_normalized(self):
        """Extracted text shall have internal whitespace collapsed."""
        page = parse(
            """<html><body><h2>  Club
                 Deportivo  </h2>
            <h5><strong>Provincia:</strong>
                A   Coruña</h5>
            <table class="table-striped"><tr><th>n</th></tr>
            <tr><td> María
               Souto </td><td>  Secretaria </td></tr></table></body></html>"""
        )

        record = extract_records(page, "6")[0]

        assert record.organization_name == "Club Deportivo"
        assert record.organization_province == "A Coruña"
        assert record.person_name == "María Souto"
        assert record.person_role == "Secretaria"


class TestExtractOrganization:
    """Tests for the organization header block."""

    def test_h5_without_strong_is_ignored(self):
        """h5 elements without a bold label shall not be read."""
        page = parse("<html><body><h5>Email: plain@example.org</h5></body></html>")

        fields = extract_organization(page)

        assert fields["organization_email"] is None
        assert fields["organization_name"] == ""


class TestRecordModel:
    """Tests for Record validation."""

    def test_blank_values_become_sentinels(self):
        """Blank names and roles shall be replaced by sentinels on validation."""
        record = Record(link_id="1", organization_name="  ", person_name=None, person_role="")

        assert record.organization_name == ORGANIZATION_NAME_SENTINEL
        assert record.person_name == PERSON_NAME_SENTINEL
        assert record.person_role == PERSON_ROLE_SENTINEL

    def test_negative_team_count_rejected(self):
        """team_count shall not be negative."""
        with pytest.raises(ValidationError):
            Record(link_id="1", team_count=-1)
