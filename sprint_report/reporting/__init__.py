"""Markdown rendering of sprint analysis and member task reports"""
from .builder import MarkdownReportBuilder, default_sections
from .markdown import ReportContext, ReportSection, escape_table_cell
from .member_report import MemberTaskReportBuilder

__all__ = [
    "MarkdownReportBuilder",
    "MemberTaskReportBuilder",
    "ReportContext",
    "ReportSection",
    "default_sections",
    "escape_table_cell",
]
