from __future__ import annotations
from typing import List, Dict, Any
from io import BytesIO
from datetime import datetime

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.styles import Font, Alignment


def rows_to_xlsx_bytes(rows: List[Dict[str, Any]], columns: List[str], sheet_name: str = "Participants") -> bytes:
    """
    rows: list of dict, each dict is a row; columns fixes header order
    """
    sheet_name = sheet_name[:31]
    df = pd.DataFrame(rows, columns=columns)

    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        ws = writer.sheets[sheet_name]

        header_font = Font(bold=True)
        for col_idx in range(1, len(columns) + 1):
            cell = ws.cell(row=1, column=col_idx)
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center", vertical="center")

        # autosize columns
        for col_idx, h in enumerate(columns, start=1):
            max_len = len(str(h))
            for row_idx in range(2, ws.max_row + 1):
                v = ws.cell(row=row_idx, column=col_idx).value
                if v is None:
                    continue
                max_len = max(max_len, len(str(v)))
            ws.column_dimensions[get_column_letter(col_idx)].width = min(max_len + 2, 60)

    return buf.getvalue()


def make_filename(prefix: str = "participants") -> str:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{ts}.xlsx"
