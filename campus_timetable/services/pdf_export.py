"""
PDF rendering of a timetable as a single grid: one row per class.
"""

from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from campus_timetable.models.models import Timetable

pt: float = 1.0

COLUMNS = ["Sr.No", "Day", "Course Code", "Course Name", "Time", "Instructor Name", "Room No"]
COL_WIDTHS = [40, 60, 75, 140, 70, 110, 50]

_HEADER = colors.HexColor("#1e293b")
_LIGHT = colors.HexColor("#e2e8f0")
_ALT = colors.HexColor("#f1f5f9")
_GRID = colors.HexColor("#334155")


def timetable_rows(timetable: Timetable) -> list:
    """Flatten the schedule into table rows, numbered from 1."""
    rows = []
    sr_no = 1
    for schedule_day in timetable.schedule:
        for entry in schedule_day.classes:
            rows.append([
                str(sr_no),
                schedule_day.day.value,
                entry.course_code,
                entry.course_name,
                entry.time_slot,
                entry.instructor_name,
                entry.room_number,
            ])
            sr_no += 1
    return rows


def render_timetable_pdf(timetable: Timetable) -> bytes:
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=30*pt, rightMargin=30*pt,
        topMargin=30*pt, bottomMargin=30*pt,
        title="Timetable",
    )

    styles = getSampleStyleSheet()
    title_st = ParagraphStyle("T", parent=styles["Title"], fontSize=18, alignment=TA_CENTER, spaceAfter=4)
    sub_st = ParagraphStyle("S", parent=styles["Normal"], fontSize=9, textColor=colors.grey,
                            alignment=TA_CENTER, spaceAfter=12)
    cell_st = ParagraphStyle("C", parent=styles["Normal"], fontSize=9, leading=11, alignment=TA_CENTER)

    body = [
        [Paragraph(escape(value), cell_st) for value in row]
        for row in timetable_rows(timetable)
    ]
    if not body:
        body = [["", "No classes scheduled", "", "", "", "", ""]]

    tbl = Table([COLUMNS] + body, colWidths=COL_WIDTHS, repeatRows=1)
    style = TableStyle([
        # Header row
        ("BACKGROUND",   (0, 0), (-1, 0),  _HEADER),
        ("TEXTCOLOR",    (0, 0), (-1, 0),  _LIGHT),
        ("FONTNAME",     (0, 0), (-1, 0),  "Helvetica-Bold"),
        ("FONTSIZE",     (0, 0), (-1, 0),  10),
        # Body
        ("FONTNAME",     (0, 1), (-1, -1), "Helvetica"),
        ("FONTSIZE",     (0, 1), (-1, -1), 9),
        ("ALIGN",        (0, 0), (-1, -1), "CENTER"),
        ("VALIGN",       (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING",   (0, 0), (-1, -1), 6),
        ("BOTTOMPADDING",(0, 0), (-1, -1), 6),
        # Grid
        ("GRID",         (0, 0), (-1, -1), 0.5, _GRID),
    ])
    for row_idx in range(2, len(body) + 1, 2):
        style.add("BACKGROUND", (0, row_idx), (-1, row_idx), _ALT)
    tbl.setStyle(style)

    story = [
        Paragraph("Timetable", title_st),
        Paragraph(
            escape(f"{timetable.department}  ·  Semester {timetable.semester}  ·  {timetable.shift.value} shift"),
            sub_st,
        ),
        tbl,
        Spacer(1, 6),
    ]
    doc.build(story)
    return buf.getvalue()
