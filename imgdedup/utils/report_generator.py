import html
import json
import logging
from pathlib import Path

from imgdedup.core.models import ActionTaken, ResolutionOutcome, ScanSummary
from imgdedup.utils.file_utils import format_file_size

logger = logging.getLogger(__name__)


class ReportGenerator:
    """
    Write a report of one deduplication run, as HTML or JSON
    """

    def generate_report(self,
                        summary: ScanSummary,
                        output_path: str = "duplicate_report.html") -> Path:
        """
        Generate a report; the format follows the file suffix
        (.json -> JSON, anything else -> HTML)
        """
        path = Path(output_path)
        if path.parent and not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)

        if path.suffix.lower() == '.json':
            content = json.dumps(summary.to_dict(), indent=2)
        else:
            content = self._render_html(summary)

        path.write_text(content, encoding='utf-8')
        logger.info("Report generated: %s", path)
        return path

    def _render_html(self, summary: ScanSummary) -> str:
        stats_html = f"""
        <div class="statistics">
            <h2>Summary</h2>
            <p><strong>Mode:</strong> {summary.mode.value}{' (dry run)' if self._is_dry_run(summary) else ''}</p>
            <p><strong>Files scanned:</strong> {summary.files_scanned} of {summary.files_found}
               ({format_file_size(summary.bytes_scanned)})</p>
            <p><strong>Duplicate groups:</strong> {summary.duplicate_groups}</p>
            <p><strong>Duplicate files:</strong> {summary.duplicate_files}</p>
            <p><strong>Actions taken:</strong> {summary.actions_taken}</p>
            <p><strong>Errors:</strong> {summary.error_count}</p>
        </div>
        """

        groups_html = "<div class='duplicate-groups'>"
        for idx, outcome in enumerate(summary.outcomes):
            groups_html += self._create_group_html(idx, outcome)
        groups_html += "</div>"

        final_html = self._create_html_template()
        final_html = final_html.replace("{{STATS}}", stats_html)
        final_html = final_html.replace("{{GROUPS}}", groups_html)
        final_html = final_html.replace("{{ERRORS}}", self._create_errors_html(summary))
        return final_html

    @staticmethod
    def _is_dry_run(summary: ScanSummary) -> bool:
        return any(o.dry_run for o in summary.outcomes)

    def _create_group_html(self, idx: int, outcome: ResolutionOutcome) -> str:
        """Create HTML for a resolved group"""
        esc = html.escape
        if outcome.action_taken is ActionTaken.DELETED:
            heading = f"Deleted ({len(outcome.removed_or_copied)})"
            items = outcome.removed_or_copied
        else:
            heading = "Copied to"
            items = [outcome.destination] if outcome.destination else []

        group_html = f"""
        <div class="duplicate-group">
            <h3>Group {idx + 1}</h3>
            <div class="representative">
                <h4>Survivor</h4>
                <p>{esc(outcome.survivor)}</p>
            </div>
            <div class="duplicates-list">
                <h4>{heading}</h4>
                <ul>
        """
        for item in items:
            group_html += f"<li>{esc(item)}</li>"
        for err in outcome.errors:
            group_html += f"<li class='error'>{esc(err.path)}: {esc(err.reason)}</li>"

        group_html += """
                </ul>
            </div>
        </div>
        """
        return group_html

    def _create_errors_html(self, summary: ScanSummary) -> str:
        if not summary.scan_errors:
            return ""
        rows = "".join(
            f"<li class='error'>{html.escape(n.path)} ({n.kind}): {html.escape(n.reason)}</li>"
            for n in summary.scan_errors
        )
        return f"<div class='scan-errors'><h2>Skipped files</h2><ul>{rows}</ul></div>"

    def _create_html_template(self) -> str:
        """HTML template for report"""
        return """
        <!DOCTYPE html>
        <html>
        <head>
            <title>Image Deduplication Report</title>
            <style>
                body { font-family: Arial, sans-serif; margin: 20px; }
                .statistics { background: #f0f0f0; padding: 20px; border-radius: 5px; }
                .duplicate-group { border: 1px solid #ccc; margin: 20px 0; padding: 15px; }
                .representative { background: #e8f5e9; padding: 10px; }
                .duplicates-list { margin-top: 10px; }
                .error { color: #d32f2f; }
            </style>
        </head>
        <body>
            <h1>Image Deduplication Report</h1>
            {{STATS}}
            {{GROUPS}}
            {{ERRORS}}
        </body>
        </html>
        """
