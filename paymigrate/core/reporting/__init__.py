from .report import ReportData, ReportService, analyze_bulk_result, analyze_history

__all__ = ["ReportData", "ReportService", "analyze_bulk_result", "analyze_history"]
