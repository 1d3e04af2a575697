"""Live search over the loaded catalog.

Copyright (c) Bryn Gwalad 2025
"""

from typing import List, Optional, Sequence

from api.models import SubstitutionRecord


def search_text(record: SubstitutionRecord) -> str:
    """Lowercased text a query is matched against. Null fields are left out."""
    fields = (record.product_name, record.old_code, record.new_code, record.notes)
    return " ".join(value for value in fields if value).lower()


def filter_catalog(records: Sequence[SubstitutionRecord], query: Optional[str]) -> List[SubstitutionRecord]:
    """Return the records whose text contains ``query``, in catalog order.

    The query is trimmed and matched case-insensitively; a blank query
    returns every record.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return list(records)
    return [record for record in records if needle in search_text(record)]
