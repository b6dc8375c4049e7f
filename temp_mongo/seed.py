"""
Seed data for a temporary MongoDB instance.

A DataSeeder names a database and collection plus the documents to insert.
Seeds can be built in code, read from an extended JSON file, or read from
a sheet of an Excel workbook (needs the `excel` extra).
"""

import logging
from typing import Any, Dict, List, Optional

from bson import json_util

logger = logging.getLogger(__name__)

CELL_TYPES = (str, bool, int, float)


class DataSeeder:
    def __init__(self, database_name: str = "", collection_name: str = "", documents: Optional[List[dict]] = None):
        self.database_name = database_name
        self.collection_name = collection_name
        self.documents = list(documents or [])

    def new_in(self, database_name: str, collection_name: str, documents: List[dict]) -> "DataSeeder":
        """A new seeder for another database and collection."""
        return DataSeeder(database_name, collection_name, documents)

    def seed(self, client) -> int:
        """
        Insert all documents into the collection.
        Returns the number of documents inserted.
        """
        if not self.database_name or not self.collection_name:
            raise ValueError("DataSeeder needs a database_name and a collection_name")
        if not self.documents:
            return 0

        collection = client[self.database_name][self.collection_name]
        # insert_many adds _id to the dicts it is given
        result = collection.insert_many([dict(doc) for doc in self.documents])
        logger.debug(
            "Seeded %d document(s) into %s.%s",
            len(result.inserted_ids), self.database_name, self.collection_name,
        )
        return len(result.inserted_ids)

    @classmethod
    def from_json_file(cls, path: str) -> "DataSeeder":
        """
        Read a seed file of the form
        {"database_name": ..., "collection_name": ..., "documents": [...]}.
        Documents may use MongoDB extended JSON ({"$oid": ...}, {"$date": ...}).
        """
        with open(path, 'r', encoding='utf-8') as f:
            data = json_util.loads(f.read())

        missing = [k for k in ("database_name", "collection_name", "documents") if k not in data]
        if missing:
            raise ValueError(f"Seed file {path} is missing: {', '.join(missing)}")
        if not isinstance(data["documents"], list):
            raise ValueError(f"Seed file {path}: documents must be a list")

        return cls(data["database_name"], data["collection_name"], data["documents"])

    @classmethod
    def from_excel(cls, path: str, sheet: str, database_name: str = "", collection_name: str = "") -> "DataSeeder":
        """
        Read documents from an Excel sheet.

        The first row with any value is the header; columns start at its first
        non-empty cell. Every later non-empty row becomes one document. Empty
        cells and cells that are not text, numbers or booleans are skipped.
        """
        from openpyxl import load_workbook

        workbook = load_workbook(path, read_only=True, data_only=True)
        try:
            if sheet not in workbook.sheetnames:
                raise ValueError(f"Workbook {path} has no sheet named {sheet!r}")
            rows = [list(row) for row in workbook[sheet].iter_rows(values_only=True)]
        finally:
            workbook.close()

        return cls(database_name, collection_name, rows_to_documents(rows))


def _is_empty(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and cell == "")


def rows_to_documents(rows: List[list]) -> List[Dict[str, Any]]:
    """Turn sheet rows (header first) into documents."""
    rows = iter(rows)
    header = None
    for row in rows:
        if any(not _is_empty(cell) for cell in row):
            header = row
            break
    if header is None:
        raise ValueError("No non-empty header row found")

    start_col = next(i for i, cell in enumerate(header) if not _is_empty(cell))
    columns = [
        (i, str(name))
        for i, name in enumerate(header)
        if i >= start_col and not _is_empty(name)
    ]

    documents = []
    for row in rows:
        if len(row) <= start_col or all(_is_empty(cell) for cell in row):
            continue

        document = {}
        for i, name in columns:
            if i >= len(row):
                break
            cell = row[i]
            if _is_empty(cell) or not isinstance(cell, CELL_TYPES):
                continue
            document[name] = cell
        documents.append(document)

    return documents
