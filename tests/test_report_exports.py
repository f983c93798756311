"""Excel and PDF report generation."""
from openpyxl import load_workbook
import pytest

from agrismart.services.crop_prediction_service import FarmInput
from agrismart.services.optimization_advisor import OptimizationSuggestion
from agrismart.services.report_excel_service import PredictionExcelService
from agrismart.services.report_pdf_service import PredictionPDFService


@pytest.fixture
def prediction(prediction_service):
    return prediction_service.predict(FarmInput(crop="Rice", area_ha=2, location="Kanpur", selected_product="dap"))


class TestExcelReport:

    def test_sheets(self, prediction):
        workbook = load_workbook(PredictionExcelService().generate_prediction_excel(prediction))
        assert workbook.sheetnames == ["Summary", "Fertilizer Plan", "Suggestions"]

    def test_summary_values(self, prediction):
        workbook = load_workbook(PredictionExcelService().generate_prediction_excel(prediction))
        rows = {
            row[0]: row[1]
            for row in workbook["Summary"].iter_rows(min_row=4, max_col=2, values_only=True)
            if row[0]
        }
        assert rows["Crop"] == "Rice"
        assert rows["Location"] == "Kanpur"
        assert rows["Soil type"] == "Alluvial"
        assert rows["Predicted yield (t/ha)"] == prediction.yield_tons_per_ha

    def test_summary_has_inputs_heading(self, prediction):
        sheet = load_workbook(PredictionExcelService().generate_prediction_excel(prediction))["Summary"]
        assert sheet["A3"].value == "Inputs"
        assert sheet["A3"].font.bold
        assert sheet["A3"].font.sz == 12

    def test_fertilizer_rows(self, prediction):
        sheet = load_workbook(PredictionExcelService().generate_prediction_excel(prediction))["Fertilizer Plan"]
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0] == ("Product", "Amount", "Unit", "Purpose")
        assert len(rows) == 1 + len(prediction.fertilizer_recommendations)
        assert rows[1][0] == "DAP (18-46-0)"
        assert rows[1][1] == 96

    def test_suggestion_rows(self, prediction):
        sheet = load_workbook(PredictionExcelService().generate_prediction_excel(prediction))["Suggestions"]
        rows = list(sheet.iter_rows(values_only=True))
        assert rows[0] == ("Priority", "Title", "Description")
        assert rows[1][:2] == ("HIGH", "Implement Drip Irrigation")


class TestPdfReport:

    def test_generates_pdf(self, prediction):
        buffer = PredictionPDFService().generate_prediction_pdf(prediction)
        content = buffer.getvalue()
        assert content.startswith(b"%PDF")
        assert len(content) > 1000

    def test_markup_characters_are_escaped(self, prediction):
        prediction.suggestions.append(OptimizationSuggestion(
            title="Apply Shade Nets & Mulching",
            description="Keep soil < 35 °C & moist",
            priority="high",
        ))
        buffer = PredictionPDFService().generate_prediction_pdf(prediction)
        assert buffer.getvalue().startswith(b"%PDF")

    def test_no_suggestions(self, prediction):
        prediction.suggestions = []
        buffer = PredictionPDFService().generate_prediction_pdf(prediction)
        assert buffer.getvalue().startswith(b"%PDF")
