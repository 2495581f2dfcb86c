"""Report writer - JSON for machines, a printable HTML page for people."""

import json
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from jinja2 import Environment

from apiscanner.core.models import Finding, Severity

_HTML = """<!DOCTYPE html>
<html><head><meta charset="utf-8"><title>{{ meta.title }}</title>
<style>
body{font-family:Helvetica,Arial,sans-serif;font-size:10pt;margin:2rem}
h1{font-size:16pt}
table{width:100%;border-collapse:collapse;table-layout:fixed}
th,td{border:1px solid #999;padding:4px;vertical-align:top;word-wrap:break-word}
th{background:#eee}
.HIGH{color:#b00}.MEDIUM{color:#b60}.LOW{color:#070}.INFO{color:#555}
pre{white-space:pre-wrap;margin:0;font-size:8pt}
@media print{body{margin:0}}
</style></head>
<body>
<h1>{{ meta.title }}</h1>
<p>OpenAPI: {{ meta.openapi }}<br>Base URL: {{ meta.baseUrl }}<br>Generated: {{ meta.generatedAt }}</p>
<p>{% for sev, n in counts %}<span class="{{ sev }}">{{ sev }}: {{ n }}</span>{% if not loop.last %}, {% endif %}{% endfor %}</p>
<table>
<colgroup><col style="width:18%"><col style="width:8%"><col style="width:7%"><col style="width:17%"><col style="width:25%"><col style="width:25%"></colgroup>
<tr><th>Endpoint</th><th>Method</th><th>Status</th><th>Type</th><th>Message</th><th>Evidence</th></tr>
{% for f in findings %}
<tr>
<td>{{ f.endpoint }}</td><td>{{ f.method }}</td><td>{{ f.status }}</td>
<td>{{ f.owasp }} / <span class="{{ f.severity.name }}">{{ f.severity.name }}</span></td>
<td>{{ f.message }}{% if f.recommendation %}<br><em>{{ f.recommendation }}</em>{% endif %}</td>
<td><pre>{{ f.evidence | trim_to(600) }}</pre></td>
</tr>
{% endfor %}
</table>
</body></html>
"""


def _trim(s: Optional[str], n: int) -> str:
    if not s:
        return ""
    return s[:n] + "...(truncated)" if len(s) > n else s


@dataclass
class ReportFiles:
    json_path: str
    html_path: str


class ReportWriter:

    def __init__(self, output_dir: str = "reports", prefix: str = "APIScan"):
        self.output_dir = output_dir
        self.prefix = prefix
        self._env = Environment(autoescape=True)
        self._env.filters["trim_to"] = _trim
        self._template = self._env.from_string(_HTML)

    @staticmethod
    def build(title: str, openapi: str, base_url: str, findings: List[Finding],
              generated_at: Optional[datetime] = None) -> Dict[str, Any]:
        when = generated_at or datetime.now()
        return {
            "meta": {
                "title": title,
                "openapi": openapi,
                "baseUrl": base_url,
                "generatedAt": when.isoformat(timespec="seconds"),
            },
            "findings": [f.to_dict() for f in findings],
        }

    def write(self, title: str, openapi: str, base_url: str, findings: List[Finding]) -> ReportFiles:
        os.makedirs(self.output_dir, exist_ok=True)
        now = datetime.now()
        stem = os.path.join(self.output_dir, f"{self.prefix}-{now.strftime('%Y%m%d-%H%M%S')}")
        report = self.build(title, openapi, base_url, findings, now)

        json_path = stem + ".json"
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(report, f, indent=2, ensure_ascii=False)

        html_path = stem + ".html"
        counts = [(sev.name, sum(1 for x in findings if x.severity is sev)) for sev in reversed(Severity)]
        with open(html_path, "w", encoding="utf-8") as f:
            f.write(self._template.render(meta=report["meta"], findings=findings, counts=counts))

        return ReportFiles(json_path, html_path)
