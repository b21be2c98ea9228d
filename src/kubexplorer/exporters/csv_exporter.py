import csv
import io
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiofiles

from .base_exporter import BaseExporter


class CSVExporter(BaseExporter):
    DEFAULT_FILENAME = "kube-resource-usage.csv"

    @staticmethod
    def default_filename(namespace: Optional[str] = None, now: Optional[datetime] = None) -> str:
        """Builds 'kube-resource-usage-<namespace|all>-<UTC timestamp>.csv'."""
        now = now or datetime.now(timezone.utc)
        scope = namespace if namespace else "all"
        return f"kube-resource-usage-{scope}-{now.strftime('%Y%m%d-%H%M%S')}.csv"

    async def export(self, data: List[Dict[str, Any]], path: str | None = None) -> str:
        """Export data to CSV file. Returns path written.

        Data is expected to be a list of dict-like records. If empty, an empty
        file will be created.
        """
        out_path = path or self.DEFAULT_FILENAME
        rows = list(data or [])

        # Ensure parent directory exists
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)

        if not rows:
            async with aiofiles.open(out_path, "w", encoding="utf-8"):
                pass
            return out_path

        # Collect headers from union of keys to keep stable order
        headers = []
        for r in rows:
            for k in r.keys():
                if k not in headers:
                    headers.append(k)

        # csv.DictWriter needs a synchronous file object: render into memory,
        # then write the text asynchronously.
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=headers)
        writer.writeheader()
        for r in rows:
            writer.writerow({k: self._sanitize_cell(v) for k, v in r.items()})

        async with aiofiles.open(out_path, "w", encoding="utf-8", newline="") as fh:
            await fh.write(output.getvalue())

        return out_path

    def _sanitize_cell(self, value: Any) -> Any:
        """
        Sanitize value to prevent CSV formula injection.
        If the value is a string starting with =, +, -, or @, prefix it with a single quote.
        """
        if isinstance(value, str) and value.startswith(("=", "+", "-", "@")):
            return f"'{value}"
        return value
