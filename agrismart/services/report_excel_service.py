"""
Prediction Excel Export Service.
Generates Excel reports for crop predictions.
"""
import logging
from io import BytesIO
from datetime import datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from agrismart.services.crop_prediction_service import CropPrediction

logger = logging.getLogger(__name__)

AGRISMART_GREEN = "16A34A"
AGRISMART_DARK = "166534"
HEADER_BG = "DCFCE7"


class PredictionExcelService:
    """Service for generating prediction Excel reports."""

    def __init__(self):
        self.header_fill = PatternFill(start_color=AGRISMART_DARK, end_color=AGRISMART_DARK, fill_type="solid")
        self.header_font = Font(bold=True, color="FFFFFF", size=11)
        self.title_font = Font(bold=True, size=16, color=AGRISMART_DARK)
        self.subtitle_font = Font(bold=True, size=12, color=AGRISMART_DARK)
        self.light_fill = PatternFill(start_color=HEADER_BG, end_color=HEADER_BG, fill_type="solid")
        self.border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )

    def _apply_header_style(self, ws, row_num: int, max_col: int):
        """Apply header styling to a row."""
        for col in range(1, max_col + 1):
            cell = ws.cell(row=row_num, column=col)
            cell.fill = self.header_fill
            cell.font = self.header_font
            cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
            cell.border = self.border

    def _auto_adjust_columns(self, ws):
        """Auto-adjust column widths."""
        for column in ws.columns:
            column_letter = get_column_letter(column[0].column)
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            ws.column_dimensions[column_letter].width = min(max(max_length + 2, 12), 60)

    def generate_prediction_excel(self, prediction: CropPrediction) -> BytesIO:
        """
        Generate Excel report for a crop prediction.

        Sheets: Summary, Fertilizer Plan, Suggestions.

        Returns:
            BytesIO with Excel file content
        """
        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        self._create_summary_sheet(wb, prediction)
        self._create_fertilizer_sheet(wb, prediction)
        self._create_suggestions_sheet(wb, prediction)

        buffer = BytesIO()
        wb.save(buffer)
        buffer.seek(0)
        logger.info(f"Excel report generated for {prediction.crop}")
        return buffer

    def _create_summary_sheet(self, wb, prediction: CropPrediction) -> Any:
        ws = wb.create_sheet("Summary")
        row = 1

        ws.cell(row=row, column=1, value="CROP YIELD REPORT - AGRISMART").font = self.title_font
        ws.merge_cells(f'A{row}:C{row}')
        row += 1

        ws.cell(row=row, column=1, value=f"Generated: {datetime.now().strftime('%d/%m/%Y %H:%M')}").font = Font(italic=True)
        row += 1

        ws.cell(row=row, column=1, value="Inputs").font = self.subtitle_font
        row += 1

        inputs = prediction.inputs
        info = [
            ("Crop", prediction.crop),
            ("Location", inputs.location or "-"),
            ("Soil type", inputs.soil_type or "-"),
            ("Area (ha)", inputs.area_ha),
            ("Rainfall (mm)", inputs.rainfall_mm),
            ("Temperature (°C)", inputs.temperature_c),
            ("Fertilizer applied (kg)", inputs.fertilizer_kg),
            ("Predicted yield (t/ha)", prediction.yield_tons_per_ha),
        ]
        for label, value in info:
            ws.cell(row=row, column=1, value=label).font = Font(bold=True)
            ws.cell(row=row, column=1).fill = self.light_fill
            ws.cell(row=row, column=2, value=value)
            for col in (1, 2):
                ws.cell(row=row, column=col).border = self.border
            row += 1

        self._auto_adjust_columns(ws)
        return ws

    def _create_fertilizer_sheet(self, wb, prediction: CropPrediction) -> Any:
        ws = wb.create_sheet("Fertilizer Plan")
        headers = ["Product", "Amount", "Unit", "Purpose"]
        for col, header in enumerate(headers, start=1):
            ws.cell(row=1, column=col, value=header)
        self._apply_header_style(ws, 1, len(headers))

        for row, rec in enumerate(prediction.fertilizer_recommendations, start=2):
            values = [rec.product_name, rec.amount_kg, rec.unit, rec.purpose]
            for col, value in enumerate(values, start=1):
                cell = ws.cell(row=row, column=col, value=value)
                cell.border = self.border

        self._auto_adjust_columns(ws)
        return ws

    def _create_suggestions_sheet(self, wb, prediction: CropPrediction) -> Any:
        ws = wb.create_sheet("Suggestions")
        headers = ["Priority", "Title", "Description"]
        for col, header in enumerate(headers, start=1):
            ws.cell(row=1, column=col, value=header)
        self._apply_header_style(ws, 1, len(headers))

        for row, suggestion in enumerate(prediction.suggestions, start=2):
            values = [suggestion.priority.upper(), suggestion.title, suggestion.description]
            for col, value in enumerate(values, start=1):
                cell = ws.cell(row=row, column=col, value=value)
                cell.border = self.border
                cell.alignment = Alignment(wrap_text=True, vertical='top')

        self._auto_adjust_columns(ws)
        return ws


prediction_excel_service = PredictionExcelService()
