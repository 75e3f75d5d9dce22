from __future__ import annotations

from pathlib import Path

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from retailpos.domain.errors import NotFoundError


class ReportingService:
    def __init__(self, repo):
        self.repo = repo

    def export_session_report_excel(self, path: str | Path, session_id: str) -> Path:
        """Write the closing report (Z report) of one caisse session."""
        details = self.repo.session_details(session_id)
        if details is None:
            raise NotFoundError("Session not found.")
        session, summary = details.session, details.summary

        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = f"Caisse session: {session.session_name}"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Opened"
        ws["B3"] = session.opened_at
        ws["A4"] = "Closed"
        ws["B4"] = session.closed_at or "(active)"
        ws["A5"] = "Status"
        ws["B5"] = session.status

        rows = [
            ("Opening amount", session.opening_amount),
            ("Transactions", summary.transactions_count),
            ("Total revenue", summary.total_revenue),
            ("Cash revenue", summary.cash_revenue),
            ("Card revenue", summary.card_revenue),
            ("Mobile revenue", summary.mobile_revenue),
            ("Average transaction", summary.average_transaction),
            ("Expected cash", session.expected_amount),
            ("Counted cash", session.closing_amount),
            ("Difference", session.difference),
        ]

        start_row = 7
        for i, (label, val) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            if val is None:
                ws[f"B{r}"] = ""
            elif isinstance(val, int):
                ws[f"B{r}"] = val
            else:
                ws[f"B{r}"] = float(val)
                money(ws[f"B{r}"])

        if session.closing_notes:
            ws[f"A{start_row + len(rows) + 1}"] = "Notes"
            ws[f"B{start_row + len(rows) + 1}"] = session.closing_notes

        set_widths(ws, {"A": 24, "B": 30})

        # -------- 2) Sales --------
        ws2 = wb.create_sheet("Sales")
        ws2.append(["Sale ID", "Sale number", "Datetime", "Payment method", "Customer ID", "Total"])
        bold_row(ws2, 1)

        for out_row, s in enumerate(details.sales, start=2):
            ws2.append([s.id, s.sale_number, s.created_at, s.payment_method, s.customer_id or "", float(s.total_amount)])
            money(ws2[f"F{out_row}"])

        ws2.freeze_panes = "A2"
        set_widths(ws2, {"A": 10, "B": 18, "C": 22, "D": 16, "E": 12, "F": 14})
        if ws2.max_row >= 2:
            add_table(ws2, "SessionSales", 1, 1, ws2.max_row, 6)

        target = Path(path)
        wb.save(target)
        return target
