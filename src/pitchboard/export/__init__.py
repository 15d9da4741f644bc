from .service import ExportService, lineup_rows

__all__ = ["ExportService", "lineup_rows"]
