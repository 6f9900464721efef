"""
Sequential document numbers: RFQ-2025-0001, INV-2025-0001, PO-2025-0001, T-001.
"""

import re
from datetime import datetime
from typing import Optional


def _max_suffix(values, pattern) -> int:
    highest = 0
    for value in values:
        match = pattern.match(value or '')
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def next_yearly_number(session, column, prefix: str, organization_column=None,
                       organization_id: Optional[str] = None, year: int = None) -> str:
    """Next '{prefix}-{year}-{0001}' number, counting within the organization."""
    year = year or datetime.utcnow().year
    stem = f"{prefix}-{year}-"
    query = session.query(column).filter(column.like(f"{stem}%"))
    if organization_column is not None and organization_id:
        query = query.filter(organization_column == organization_id)
    pattern = re.compile(rf"^{re.escape(stem)}(\d+)$")
    highest = _max_suffix((row[0] for row in query.all()), pattern)
    return f"{stem}{highest + 1:04d}"


def next_transmittal_number(session, column, project_column, project_id: str) -> str:
    """Next 'T-001' number within a project."""
    query = session.query(column).filter(project_column == project_id)
    highest = _max_suffix((row[0] for row in query.all()), re.compile(r"^T-(\d+)$"))
    return f"T-{highest + 1:03d}"
