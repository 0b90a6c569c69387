"""
GitHub Language Stats (Flask)

What it does:
- Accepts a GitHub username
- Fetches the user's non-fork repositories via GitHub GraphQL (all pages)
- Aggregates per-repository language bytes into overall percentages
- Renders the result as an SVG card, or returns it as JSON

Setup:
  pip install -e .

Run:
  export GITHUB_TOKEN="github_pat_..."   # recommended (higher rate limits)
  python app.py
  open http://localhost:3000/octocat

Endpoints:
  GET  /<username>[?allAffiliations=true]      -> SVG card (image/svg+xml)
  GET  /api/<username>[?allAffiliations=true]  -> JSON { "success": true, "data": {...} }
  GET  /healthz                                -> liveness + token status
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Dict, List, Tuple

from flask import Flask, Response, jsonify, render_template, request

import config
from language_stats import get_user_repos_with_stats

# -----------------------------
# Logging
# -----------------------------
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

if not config.GITHUB_TOKEN:
    logger.warning("No GitHub token provided - you may hit rate limits")

# -----------------------------
# Flask app
# -----------------------------
app = Flask(__name__)

# client address -> request timestamps inside the current window
_RATE_WINDOWS: Dict[str, List[float]] = {}
_RATE_LOCK = threading.Lock()


# -----------------------------
# Helpers
# -----------------------------
def _all_affiliations() -> bool:
    return request.args.get("allAffiliations") == "true"


def _error_response(exc: Exception) -> Tuple[Response, int]:
    """
    Map a failure to a generic client message. Detail stays in the server log.
    """
    msg = str(exc)
    status = 500
    message = "Failed to fetch GitHub data"
    if "user not found" in msg.lower():
        status = 404
        message = "GitHub user not found"
    elif "API rate limit exceeded" in msg:
        status = 429
        message = "GitHub API rate limit exceeded"
    return jsonify({"success": False, "error": {"message": message}}), status


def _rate_limited(client: str) -> bool:
    """
    Sliding-window check; records the hit when it is allowed.
    """
    if not config.API_RATE_LIMIT_ENABLED:
        return False
    now = time.time()
    cutoff = now - config.API_RATE_LIMIT_WINDOW_SECONDS
    with _RATE_LOCK:
        # drop clients whose newest hit has left the window
        for key in [k for k, ts in _RATE_WINDOWS.items() if not ts or ts[-1] <= cutoff]:
            del _RATE_WINDOWS[key]
        hits = [t for t in _RATE_WINDOWS.get(client, []) if t > cutoff]
        if len(hits) >= config.API_RATE_LIMIT_MAX:
            _RATE_WINDOWS[client] = hits
            return True
        hits.append(now)
        _RATE_WINDOWS[client] = hits
    return False


# -----------------------------
# Flask routes
# -----------------------------
@app.route("/", methods=["GET"])
def home():
    return (
        """
        <!doctype html>
        <html>
        <head><meta charset="utf-8"><title>GitHub Language Stats</title></head>
        <body style="font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; padding: 24px;">
          <h2>GitHub Language Stats is running</h2>
          <p>SVG card: <code>/octocat</code></p>
          <p>JSON: <code>/api/octocat?allAffiliations=true</code></p>
        </body>
        </html>
        """,
        200,
        {"Content-Type": "text/html; charset=utf-8"},
    )


@app.route("/healthz", methods=["GET"])
def healthz():
    return jsonify({"ok": True, "token_configured": bool(config.GITHUB_TOKEN)})


@app.route("/<username>", methods=["GET"])
def user_repos_svg(username: str):
    try:
        data = get_user_repos_with_stats(username, _all_affiliations())
    except Exception as e:
        logger.exception("Error fetching GitHub data for %s: %s", username, e)
        return _error_response(e)

    svg = render_template("languages.svg", data=data.to_dict())
    return Response(svg, mimetype="image/svg+xml")


@app.route("/api/<username>", methods=["GET"])
def user_repos_json(username: str):
    client = request.remote_addr or "unknown"
    if _rate_limited(client):
        logger.warning("Rate limit hit for client %s", client)
        return (
            jsonify({"success": False, "error": {"message": "Too many requests, please try again later."}}),
            429,
        )

    try:
        data = get_user_repos_with_stats(username, _all_affiliations())
    except Exception as e:
        logger.exception("Error fetching GitHub data for %s: %s", username, e)
        return _error_response(e)

    return jsonify({"success": True, "data": data.to_dict()})


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=config.PORT, debug=True)
