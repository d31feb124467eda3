"""Report writer engine — render scan reports for humans and machines."""

from riskradar.engines.report_writer.writers import (
    FORMATS,
    render_report,
    render_table,
    write_reports,
)

__all__ = ["FORMATS", "render_report", "render_table", "write_reports"]
