"""
Prediction PDF Report Service.
Generates PDF reports for crop predictions.
"""
import io
import logging
from datetime import datetime
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.colors import HexColor
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.enums import TA_CENTER

from agrismart.services.agronomy_rules import PRIORITY_HIGH, PRIORITY_MEDIUM
from agrismart.services.crop_prediction_service import CropPrediction

logger = logging.getLogger(__name__)

BRAND_GREEN = "#16a34a"
BRAND_DARK = "#166534"
LIGHT_GREEN = "#dcfce7"

PRIORITY_COLORS = {
    PRIORITY_HIGH: "#dc2626",
    PRIORITY_MEDIUM: "#d97706",
}


class PredictionPDFService:
    """Builds a one-document PDF summary of a prediction."""

    def __init__(self):
        styles = getSampleStyleSheet()
        self.title_style = ParagraphStyle(
            'AgriTitle', parent=styles['Title'], textColor=HexColor(BRAND_DARK), alignment=TA_CENTER
        )
        self.heading_style = ParagraphStyle(
            'AgriHeading', parent=styles['Heading2'], textColor=HexColor(BRAND_GREEN), spaceBefore=12
        )
        self.body_style = styles['BodyText']
        self.small_style = ParagraphStyle('AgriSmall', parent=styles['BodyText'], fontSize=8)

    def _table(self, rows: List[List], col_widths: List[float]) -> Table:
        table = Table(rows, colWidths=col_widths, repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HexColor(BRAND_DARK)),
            ('TEXTCOLOR', (0, 0), (-1, 0), HexColor("#ffffff")),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('GRID', (0, 0), (-1, -1), 0.5, HexColor("#9ca3af")),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [HexColor("#ffffff"), HexColor(LIGHT_GREEN)]),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        return table

    def generate_prediction_pdf(self, prediction: CropPrediction) -> io.BytesIO:
        """Render the prediction to PDF and return the buffer positioned at 0."""
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer, pagesize=letter,
            leftMargin=0.75 * inch, rightMargin=0.75 * inch,
            topMargin=0.75 * inch, bottomMargin=0.75 * inch,
            title=f"AgriSmart report - {prediction.crop}",
        )
        inputs = prediction.inputs
        story = [
            Paragraph("Crop Yield Report", self.title_style),
            Paragraph(f"Generated {datetime.now().strftime('%d/%m/%Y %H:%M')}", self.small_style),
            Spacer(1, 12),
            Paragraph("Field", self.heading_style),
            self._table([
                ["Parameter", "Value"],
                ["Crop", prediction.crop],
                ["Location", inputs.location or "-"],
                ["Soil type", inputs.soil_type or "-"],
                ["Area", f"{inputs.area_ha} ha"],
                ["Rainfall", f"{inputs.rainfall_mm} mm"],
                ["Temperature", f"{inputs.temperature_c} °C"],
                ["Fertilizer applied", f"{inputs.fertilizer_kg:.0f} kg"],
                ["Predicted yield", f"{prediction.yield_tons_per_ha} t/ha"],
            ], [2.2 * inch, 4.5 * inch]),
            Paragraph("Fertilizer Plan", self.heading_style),
        ]

        fert_rows = [["Product", "Amount", "Purpose"]]
        for rec in prediction.fertilizer_recommendations:
            fert_rows.append([rec.product_name, f"{rec.amount_kg} {rec.unit}", rec.purpose])
        story.append(self._table(fert_rows, [2.0 * inch, 1.2 * inch, 3.5 * inch]))

        story.append(Paragraph("Optimization Suggestions", self.heading_style))
        if not prediction.suggestions:
            story.append(Paragraph("No interventions needed for these conditions.", self.body_style))
        for suggestion in prediction.suggestions:
            color = PRIORITY_COLORS.get(suggestion.priority, BRAND_GREEN)
            story.append(Paragraph(
                f'<font color="{color}"><b>[{suggestion.priority.upper()}]</b></font> '
                f'<b>{escape(suggestion.title)}</b>',
                self.body_style,
            ))
            story.append(Paragraph(escape(suggestion.description), self.small_style))
            story.append(Spacer(1, 6))

        doc.build(story)
        buffer.seek(0)
        logger.info(f"PDF report generated for {prediction.crop}")
        return buffer


prediction_pdf_service = PredictionPDFService()
