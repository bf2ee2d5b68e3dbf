"""
Report renderer
Renders a tabular result set to a PDF document or an Excel workbook
"""
import asyncio
from datetime import datetime
from io import BytesIO
from typing import List, Dict, Any, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.enums import TA_CENTER

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from .errors import RenderError
from ..utils.datetime_helper import utc_now_naive
from ..utils.logger import get_logger

logger = get_logger(__name__)

FORMAT_PDF = "pdf"
FORMAT_EXCEL = "excel"

PDF_MIME_TYPE = "application/pdf"
EXCEL_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def stringify(value: Any) -> str:
    """Cell text: None becomes empty"""
    return "" if value is None else str(value)


class ReportData:
    """Result set to render"""
    def __init__(
        self,
        columns: List[str],
        data: List[Dict[str, Any]],
        title: str = "Scheduled Report",
        generated_at: Optional[datetime] = None
    ):
        self.columns = columns
        self.data = data
        self.title = title
        self.generated_at = generated_at or utc_now_naive()

    def rows(self) -> List[List[str]]:
        return [[stringify(row.get(col)) for col in self.columns] for row in self.data]


class RenderedReport:
    """A rendered artifact ready to attach to an email"""
    def __init__(self, content: bytes, filename: str, mime_type: str):
        self.content = content
        self.filename = filename
        self.mime_type = mime_type


class ReportRenderer:
    """PDF (reportlab) and Excel (openpyxl) codecs"""

    def render_pdf(self, report_data: ReportData) -> bytes:
        """
        Build the PDF document

        A title line and a generation timestamp, then a grid with a header
        row and one row per result row. Zero rows render the header only.

        Raises:
            RenderError: stage 'pdf'
        """
        try:
            buffer = BytesIO()
            pagesize = landscape(A4) if len(report_data.columns) > 6 else A4
            doc = SimpleDocTemplate(
                buffer,
                pagesize=pagesize,
                rightMargin=0.5*inch,
                leftMargin=0.5*inch,
                topMargin=0.75*inch,
                bottomMargin=0.5*inch,
                title=report_data.title,
                invariant=1
            )

            styles = getSampleStyleSheet()
            title_style = ParagraphStyle(
                'ReportTitle',
                parent=styles['Heading1'],
                fontSize=16,
                textColor=colors.HexColor('#1f2937'),
                spaceAfter=6,
                alignment=TA_CENTER
            )
            time_style = ParagraphStyle(
                'ReportTime',
                parent=styles['Normal'],
                fontSize=9,
                textColor=colors.HexColor('#6b7280'),
                alignment=TA_CENTER
            )
            cell_style = ParagraphStyle(
                'ReportCell',
                parent=styles['Normal'],
                fontSize=8,
                leading=10
            )
            header_style = ParagraphStyle(
                'ReportHeader',
                parent=cell_style,
                fontName='Helvetica-Bold',
                textColor=colors.whitesmoke
            )

            story = [
                Paragraph(escape(report_data.title), title_style),
                Paragraph(
                    f"Generated: {report_data.generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC",
                    time_style
                ),
                Spacer(1, 0.25*inch),
            ]

            if report_data.columns:
                table_data = [[Paragraph(escape(col), header_style) for col in report_data.columns]]
                for row in report_data.rows():
                    table_data.append([Paragraph(escape(cell), cell_style) for cell in row])

                col_width = doc.width / len(report_data.columns)
                table = Table(
                    table_data,
                    colWidths=[col_width] * len(report_data.columns),
                    repeatRows=1
                )
                table.setStyle(TableStyle([
                    ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3b82f6')),
                    ('VALIGN', (0, 0), (-1, -1), 'TOP'),
                    ('TOPPADDING', (0, 0), (-1, -1), 4),
                    ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
                    ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e5e7eb')),
                    ('ROWBACKGROUNDS', (0, 1), (-1, -1),
                     [colors.white, colors.HexColor('#f9fafb')]),
                ]))
                story.append(table)
            else:
                story.append(Paragraph("The query returned no columns.", styles['Normal']))

            story.append(Spacer(1, 0.2*inch))
            story.append(Paragraph(f"Total Records: {len(report_data.data)}", styles['Normal']))

            doc.build(story)
            pdf_bytes = buffer.getvalue()
            buffer.close()

            logger.info(f"PDF generated: size={len(pdf_bytes)} bytes, rows={len(report_data.data)}")
            return pdf_bytes

        except Exception as e:
            logger.error(
                "PDF generation failed",
                extra={"title": report_data.title, "data_rows": len(report_data.data)},
                exc_info=True
            )
            raise RenderError(FORMAT_PDF, str(e)) from e

    def render_excel(self, report_data: ReportData) -> bytes:
        """
        Build the Excel workbook

        One sheet named 'Report': a header row of column names, then one row
        per result row with every value stringified.

        Raises:
            RenderError: stage 'excel'
        """
        try:
            wb = Workbook()
            ws = wb.active
            ws.title = "Report"
            wb.properties.created = report_data.generated_at
            wb.properties.modified = report_data.generated_at

            header_font = Font(name='Arial', size=11, bold=True, color='FFFFFF')
            header_fill = PatternFill(start_color='3B82F6', end_color='3B82F6', fill_type='solid')
            header_alignment = Alignment(horizontal='center', vertical='center')
            border = Border(
                left=Side(style='thin', color='E5E7EB'),
                right=Side(style='thin', color='E5E7EB'),
                top=Side(style='thin', color='E5E7EB'),
                bottom=Side(style='thin', color='E5E7EB')
            )

            for col_idx, header in enumerate(report_data.columns, 1):
                cell = ws.cell(row=1, column=col_idx, value=header)
                cell.font = header_font
                cell.fill = header_fill
                cell.alignment = header_alignment
                cell.border = border

            rows = report_data.rows()
            for row_idx, row in enumerate(rows, 2):
                for col_idx, value in enumerate(row, 1):
                    cell = ws.cell(row=row_idx, column=col_idx, value=value)
                    cell.border = border

            for col_idx, col_name in enumerate(report_data.columns, 1):
                max_length = max(
                    [len(col_name)] + [len(row[col_idx - 1]) for row in rows[:100]]
                )
                ws.column_dimensions[get_column_letter(col_idx)].width = min(max_length + 2, 50)

            ws.freeze_panes = 'A2'

            buffer = BytesIO()
            wb.save(buffer)
            excel_bytes = buffer.getvalue()
            buffer.close()

            logger.info(f"Excel generated: size={len(excel_bytes)} bytes, rows={len(rows)}")
            return excel_bytes

        except Exception as e:
            logger.error(
                "Excel generation failed",
                extra={"title": report_data.title, "data_rows": len(report_data.data)},
                exc_info=True
            )
            raise RenderError(FORMAT_EXCEL, str(e)) from e

    async def render(self, report_data: ReportData, fmt: str) -> RenderedReport:
        """
        Render to the requested format off the event loop

        Args:
            report_data: result set
            fmt: 'pdf'; anything else renders Excel

        Returns:
            RenderedReport with bytes, filename and MIME type
        """
        stamp = report_data.generated_at.strftime('%Y%m%d_%H%M%S')

        if (fmt or "").lower() == FORMAT_PDF:
            content = await asyncio.to_thread(self.render_pdf, report_data)
            return RenderedReport(content, f"report_{stamp}.pdf", PDF_MIME_TYPE)

        content = await asyncio.to_thread(self.render_excel, report_data)
        return RenderedReport(content, f"report_{stamp}.xlsx", EXCEL_MIME_TYPE)
