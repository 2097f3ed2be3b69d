"""Flask development host: serves the plugin's rows over HTTP."""

from __future__ import annotations

import logging
import threading
import webbrowser
from collections import deque
from typing import Deque, Dict, List

from flask import Flask, jsonify, request

from ..config import AppConfig
from ..host import HostAPI
from ..plugin import SpeedTestPlugin
from ..presenter import DisplayRow

LOGGER = logging.getLogger(__name__)


class WebHost(HostAPI):
    """HostAPI for a browser client that polls instead of being pushed to.

    A forced re-query bumps ``generation``; the client re-issues its query
    whenever it sees the number change.
    """

    def __init__(self, dark_theme: bool = False, max_messages: int = 20) -> None:
        self._lock = threading.Lock()
        self.dark_theme = dark_theme
        self.current_query = ""
        self.generation = 0
        self.messages: Deque[Dict[str, str]] = deque(maxlen=max_messages)
        self.last_rows: List[DisplayRow] = []

    def change_query(self, query: str, requery: bool = False) -> None:
        with self._lock:
            changed = query != self.current_query
            self.current_query = query
            if requery or changed:
                self.generation += 1

    def show_message(self, title: str, subtitle: str = "") -> None:
        LOGGER.info("Host message: %s", title)
        with self._lock:
            self.messages.append({"title": title, "subtitle": subtitle})

    def open_url(self, url: str) -> None:
        LOGGER.info("Opening %s", url)
        webbrowser.open(url)

    def is_dark_theme(self) -> bool:
        return self.dark_theme

    def remember_rows(self, rows: List[DisplayRow]) -> None:
        with self._lock:
            self.last_rows = list(rows)

    def row_at(self, index: int) -> DisplayRow:
        with self._lock:
            return self.last_rows[index]

    def snapshot(self) -> dict:
        with self._lock:
            messages = list(self.messages)
            self.messages.clear()
            return {"query": self.current_query, "generation": self.generation, "messages": messages}


def create_web_app(config: AppConfig, plugin: SpeedTestPlugin, host: WebHost) -> Flask:
    app = Flask(__name__)

    @app.get("/api/query")
    def api_query():
        search = request.args.get("q", "")
        rows = plugin.query(search)
        host.remember_rows(rows)
        return jsonify(
            {
                "rows": [_row_to_dict(index, row) for index, row in enumerate(rows)],
                "generation": host.generation,
            }
        )

    @app.post("/api/rows/<int:index>/action")
    def api_row_action(index: int):
        try:
            row = host.row_at(index)
        except IndexError:
            return jsonify({"error": f"No row {index} in the last result list"}), 404
        if row.action is None:
            return jsonify({"error": "Row has no action"}), 400
        hide = row.action()
        return jsonify({"hide": bool(hide)})

    @app.get("/api/host")
    def api_host():
        return jsonify(host.snapshot())

    @app.get("/api/status")
    def api_status():
        state = plugin.state
        return jsonify(
            {
                "title": plugin.title,
                "description": plugin.description,
                "action_keyword": config.launcher.action_keyword,
                "phase": state.phase.value,
                "status": state.status_text,
                "download_progress": state.download_progress_pct,
                "upload_progress": state.upload_progress_pct,
            }
        )

    return app


def _row_to_dict(index: int, row: DisplayRow) -> dict:
    return {
        "index": index,
        "title": row.title,
        "subtitle": row.subtitle,
        "icon": row.icon_path,
        "has_action": row.action is not None,
    }
