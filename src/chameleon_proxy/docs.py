"""
Generates a standalone HTML page documenting every recorded request.

Usage:
    chameleon-docs [recordings_path] [output_path] [--format json|yaml]

Defaults to ./recordings and ./docs.html.
"""

import argparse
import base64
import html
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from string import Template

from chameleon_proxy.errors import ChameleonError
from chameleon_proxy.record_replay.persistence import RecordingStore, create_recording_store

logger = logging.getLogger(__name__)


@dataclass
class DocumentedRequest:
    fingerprint: str
    method: str
    path: str
    status_code: int
    headers: dict[str, list[str]]
    body: str
    body_type: str  # "json", "html", "text", "binary" or "empty"
    timestamp: datetime | None


def format_body(body: bytes) -> tuple[str, str]:
    """Return the body as display text along with the detected body type"""
    if not body:
        return "", "empty"

    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return base64.b64encode(body).decode("ascii"), "binary"

    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False), "json"
    except ValueError:
        pass

    if text.lstrip().startswith("<"):
        return text, "html"
    return text, "text"


def status_class(status_code: int) -> str:
    if 200 <= status_code < 300:
        return "2xx"
    if 300 <= status_code < 400:
        return "3xx"
    if 400 <= status_code < 500:
        return "4xx"
    if status_code >= 500:
        return "5xx"
    return "other"


def load_all_recordings(store: RecordingStore) -> list[DocumentedRequest]:
    """
    Load every recording in the store, skipping (and logging) ones that can't be decoded.

    Results are sorted by method, then path.
    """
    requests = []
    for fingerprint in store.list_fingerprints():
        try:
            record = store.load(fingerprint)
        except ChameleonError as e:
            logger.warning("Failed to load %s: %s", fingerprint, e)
            continue

        try:
            timestamp = datetime.fromtimestamp(os.path.getmtime(store.get_recording_file_path(fingerprint)))
        except OSError:
            timestamp = None

        body, body_type = format_body(record.body)
        requests.append(
            DocumentedRequest(
                fingerprint=fingerprint,
                method=record.method,
                path=record.path,
                status_code=record.status_code,
                headers=record.headers,
                body=body,
                body_type=body_type,
                timestamp=timestamp,
            )
        )

    requests.sort(key=lambda r: (r.method, r.path))
    return requests


def _render_request(request: DocumentedRequest) -> str:
    header_rows = "".join(
        f"<tr><th>{html.escape(name)}</th><td>{html.escape(value)}</td></tr>"
        for name, values in request.headers.items()
        for value in values
    )
    recorded_at = request.timestamp.strftime("%Y-%m-%d %H:%M:%S") if request.timestamp else "unknown"
    return _REQUEST_TEMPLATE.substitute(
        method=html.escape(request.method),
        method_class=html.escape(request.method.lower()),
        path=html.escape(request.path),
        status_code=request.status_code,
        status_class=status_class(request.status_code),
        fingerprint=html.escape(request.fingerprint),
        recorded_at=recorded_at,
        header_rows=header_rows or '<tr><td colspan="2">No headers</td></tr>',
        body_type=request.body_type,
        body=html.escape(request.body) if request.body else "<em>Empty body</em>",
    )


def render_html(requests: list[DocumentedRequest], title: str = "API Documentation") -> str:
    methods = sorted({r.method for r in requests})
    return _PAGE_TEMPLATE.substitute(
        title=html.escape(title),
        generated_at=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        total_count=len(requests),
        method_count=len(methods),
        method_options="".join(f'<option value="{html.escape(m)}">{html.escape(m)}</option>' for m in methods),
        requests="\n".join(_render_request(r) for r in requests),
    )


def generate_docs(recordings_path: str, output_path: str, recording_format: str = "json") -> int:
    """Write the documentation page and return the number of recordings included"""
    store = create_recording_store(recording_format, recordings_path)
    try:
        requests = load_all_recordings(store)
    except OSError as e:
        raise ChameleonError(f"failed to read recordings directory: {e}") from e

    if not requests:
        raise ChameleonError(f"no recordings found in {recordings_path}")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(render_html(requests))
    return len(requests)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="chameleon-docs", description=__doc__.strip().splitlines()[0])
    parser.add_argument("recordings_path", nargs="?", default="./recordings")
    parser.add_argument("output_path", nargs="?", default="./docs.html")
    parser.add_argument("--format", dest="recording_format", choices=["json", "yaml"], default="json")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    print("📚 Generating API documentation...")
    print(f"   Reading recordings from: {args.recordings_path}")
    print(f"   Output file: {args.output_path}")

    try:
        count = generate_docs(args.recordings_path, args.output_path, args.recording_format)
    except (ChameleonError, OSError) as e:
        print(f"Failed to generate documentation: {e}", file=sys.stderr)
        return 1

    print("✅ Documentation generated successfully!")
    print(f"   Found {count} recorded requests")
    print(f"   Open {args.output_path} in your browser to view")
    return 0


_REQUEST_TEMPLATE = Template(
    """<div class="request-card" data-method="$method" data-path="$path" data-status="$status_class">
  <div class="request-header" onclick="this.parentElement.classList.toggle('open')">
    <div><span class="method method-$method_class">$method</span> <span class="path">$path</span></div>
    <div><span class="status status-$status_class">$status_code</span></div>
  </div>
  <div class="request-details">
    <p class="meta">Hash: <code>$fingerprint</code> &middot; Recorded: $recorded_at</p>
    <h3>Response headers</h3>
    <table class="headers">$header_rows</table>
    <h3>Response body <span class="body-type">$body_type</span></h3>
    <pre class="body">$body</pre>
  </div>
</div>"""
)

_PAGE_TEMPLATE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>$title - Chameleon</title>
<style>
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
       background: #f5f5f5; color: #333; line-height: 1.6; }
.header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 2rem; }
.container { max-width: 1400px; margin: 0 auto; padding: 2rem; }
.stats, .filters { background: white; padding: 1rem 1.5rem; border-radius: 8px; margin-bottom: 2rem;
                   display: flex; gap: 2rem; flex-wrap: wrap; align-items: center; }
.stat-value { font-size: 2rem; font-weight: bold; color: #667eea; }
.request-card { background: white; border-radius: 8px; margin-bottom: 1.5rem; overflow: hidden;
                box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
.request-header { padding: 1rem 1.5rem; cursor: pointer; display: flex; justify-content: space-between; }
.request-details { display: none; padding: 1rem 1.5rem; border-top: 1px solid #eee; }
.request-card.open .request-details { display: block; }
.method { display: inline-block; padding: 0.25rem 0.75rem; border-radius: 4px; font-weight: bold; color: white;
          background: #888; }
.method-get { background: #61affe; } .method-post { background: #49cc90; } .method-put { background: #fca130; }
.method-patch { background: #50e3c2; } .method-delete { background: #f93e3e; }
.path { font-family: monospace; margin-left: 0.5rem; }
.status { padding: 0.25rem 0.75rem; border-radius: 4px; font-weight: bold; }
.status-2xx { background: #d4edda; color: #155724; } .status-3xx { background: #d1ecf1; color: #0c5460; }
.status-4xx { background: #fff3cd; color: #856404; } .status-5xx { background: #f8d7da; color: #721c24; }
.status-other { background: #e2e3e5; color: #383d41; }
.meta { color: #666; font-size: 0.85rem; margin-bottom: 1rem; }
h3 { font-size: 1rem; margin: 1rem 0 0.5rem; }
.body-type { font-size: 0.75rem; color: #666; text-transform: uppercase; }
table.headers th { text-align: left; padding-right: 1rem; font-family: monospace; }
table.headers td { font-family: monospace; word-break: break-all; }
pre.body { background: #f8f8f8; padding: 1rem; border-radius: 4px; overflow-x: auto; max-height: 500px; }
</style>
</head>
<body>
<div class="header">
  <h1>$title</h1>
  <p>Generated at $generated_at from recorded traffic</p>
</div>
<div class="container">
  <div class="stats">
    <div><div class="stat-value">$total_count</div><div>Recorded requests</div></div>
    <div><div class="stat-value">$method_count</div><div>HTTP methods</div></div>
  </div>
  <div class="filters">
    <label>Search <input type="text" id="search" placeholder="Filter by path..."></label>
    <label>Method <select id="method"><option value="">All</option>$method_options</select></label>
    <label>Status <select id="status"><option value="">All</option><option>2xx</option><option>3xx</option>
      <option>4xx</option><option>5xx</option></select></label>
  </div>
  $requests
</div>
<script>
function applyFilters() {
  var search = document.getElementById('search').value.toLowerCase();
  var method = document.getElementById('method').value;
  var status = document.getElementById('status').value;
  document.querySelectorAll('.request-card').forEach(function (card) {
    var visible = card.dataset.path.toLowerCase().indexOf(search) !== -1
      && (!method || card.dataset.method === method)
      && (!status || card.dataset.status === status);
    card.style.display = visible ? '' : 'none';
  });
}
['search', 'method', 'status'].forEach(function (id) {
  document.getElementById(id).addEventListener('input', applyFilters);
});
</script>
</body>
</html>
"""
)


if __name__ == "__main__":
    sys.exit(main())
