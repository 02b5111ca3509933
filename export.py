"""export.py - Serialises the record set to CSV for download."""

import csv
import io

from errors import BadRequest

EXPORT_FILENAME = "data_export.csv"


def records_to_csv(records: list) -> str:
    """Header row comes from the first record's keys."""
    if not records:
        raise BadRequest("No data to download")

    keys = list(records[0].keys())
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(keys)
    for row in records:
        writer.writerow(["" if row.get(k) is None else row.get(k) for k in keys])
    return buf.getvalue()
