import csv
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import openpyxl

from ..diff.change_events import ChangeRecord

# Column order for tabular exports
CHANGE_LOG_HEADERS = [
    "id",
    "detectedAt",
    "slideIndex",
    "changeType",
    "elementId",
    "elementType",
    "scope",
    "severity",
    "detectionMethod",
    "confidence",
    "summary",
    "details",
]


def record_to_row(record: ChangeRecord) -> Dict[str, Any]:
    """Flatten a record for CSV/Excel; ``details`` becomes a JSON string."""
    row = record.to_dict()
    row["details"] = json.dumps(row["details"], sort_keys=True, ensure_ascii=False)
    return row


class ChangeLogExporter:
    """Writes a change log to CSV, Excel or JSON."""

    def export(
        self,
        records: Sequence[ChangeRecord],
        output_path: Union[str, Path],
        format: Optional[str] = None,
    ) -> str:
        """Export change records to a file.

        An empty change log produces a header-only table (or ``[]`` for JSON).

        Args:
            records: Change records, oldest first
            output_path: Path where the file should be saved
            format: Output format ('csv', 'excel', 'json', or None for auto-detect from extension)

        Returns:
            Path to the exported file

        Raises:
            ValueError: If format is not supported
        """
        output_path = Path(output_path)

        # Auto-detect format from extension if not provided
        if format is None:
            suffix = output_path.suffix.lower()
            if suffix == '.csv':
                format = 'csv'
            elif suffix == '.xlsx':
                format = 'excel'
            elif suffix == '.json':
                format = 'json'
            else:
                # Default to CSV if extension is not recognized
                format = 'csv'
                output_path = output_path.with_suffix('.csv')

        format = format.lower()

        if format == 'csv':
            self._export_csv([record_to_row(r) for r in records], output_path)
        elif format == 'excel':
            self._export_excel([record_to_row(r) for r in records], output_path)
        elif format == 'json':
            self._export_json([r.to_dict() for r in records], output_path)
        else:
            raise ValueError(f"Unsupported export format: {format}. Supported formats: csv, excel, json")

        return str(output_path)

    def _export_csv(self, rows: List[Dict[str, Any]], output_path: Path) -> None:
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=CHANGE_LOG_HEADERS, extrasaction='ignore')
            writer.writeheader()
            for row in rows:
                writer.writerow(row)

    def _export_excel(self, rows: List[Dict[str, Any]], output_path: Path) -> None:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = "Changes"

        for col_idx, header in enumerate(CHANGE_LOG_HEADERS, start=1):
            ws.cell(row=1, column=col_idx, value=header)

        for row_idx, row_data in enumerate(rows, start=2):
            for col_idx, header in enumerate(CHANGE_LOG_HEADERS, start=1):
                ws.cell(row=row_idx, column=col_idx, value=row_data.get(header, ''))

        wb.save(output_path)

    def _export_json(self, data: List[Dict[str, Any]], output_path: Path) -> None:
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
