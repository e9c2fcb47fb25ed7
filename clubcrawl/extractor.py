"""Record extraction from a club detail page.

A club page has a header block (name in an h2, contact details in h5
elements with a bold label), a striped table of teams and a striped table
of people. Each person becomes one Record carrying the organization fields.
"""

from __future__ import annotations

import logging

from clubcrawl.common.page_element import PageElement
from clubcrawl.data_types import LinkId, Record

logger = logging.getLogger(__name__)

STRIPED_TABLES = (
    "//table[contains(concat(' ', normalize-space(@class), ' '),"
    " ' table-striped ')]"
)

# label text on the page -> Record field
ORGANIZATION_LABELS = {
    "Email:": "organization_email",
    "Teléfonos:": "organization_phone",
    "Provincia:": "organization_province",
}


def _normalize(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(text.split())


def extract_organization(page: PageElement) -> dict[str, str | None]:
    """Read the organization header fields of a club page.

    Args:
        page: The parsed club page.

    Returns:
        Dict of organization_* Record fields. Labels that are not on the
        page map to None; the name is "" when there is no h2.
    """
    fields: dict[str, str | None] = dict.fromkeys(
        ORGANIZATION_LABELS.values()
    )

    headings = page.query_xpath("//h2", "club name", min_count=0)
    fields["organization_name"] = (
        _normalize(headings[0].text_content()) if headings else ""
    )

    for h5 in page.query_xpath("//h5[strong]", "labelled details", min_count=0):
        text = _normalize(h5.text_content())
        for label, name in ORGANIZATION_LABELS.items():
            if label in text and fields[name] is None:
                fields[name] = text.replace(label, "").strip()
    return fields


def extract_records(page: PageElement, link_id: LinkId) -> list[Record]:
    """Extract one Record per person listed on a club page.

    team_count is the number of data rows of the first striped table;
    people are the rows of the last striped table after its header row.
    A page without striped tables yields no records. Missing or blank
    text becomes a sentinel rather than an error.

    Args:
        page: The parsed club page.
        link_id: The club code the page was fetched for.

    Returns:
        Records in page order, all sharing the same organization fields.
    """
    tables = page.query_xpath(STRIPED_TABLES, "striped tables", min_count=0)
    if not tables:
        logger.debug(f"Club {link_id}: no striped tables on page")
        return []

    organization = extract_organization(page)
    team_count = len(
        tables[0].query_xpath(".//tr[td]", "team rows", min_count=0)
    )

    records: list[Record] = []
    people_rows = tables[-1].query_xpath(".//tr", "people rows", min_count=0)
    for row in people_rows[1:]:
        cells = row.query_xpath("./td", "person cells", min_count=0)
        name = cells[0].text_content() if len(cells) > 0 else None
        role = cells[1].text_content() if len(cells) > 1 else None
        records.append(
            Record(
                link_id=link_id,
                person_name=name,
                person_role=role,
                team_count=team_count,
                **organization,
            )
        )
    return records
