"""Stateless web adapter exposing the dependency graph engine over JSON."""
from __future__ import annotations

import os
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from .dag import available_dependencies
from .engine import ScheduleEngine
from .interfaces import RecordSnapshotSource, extract_records
from .types import NEW_TASK_ID, GraphConfig, SnapshotError
from .validation import validate_dependencies


app = Flask(__name__)

STATE: Dict[str, Any] = {
    "logs": [],
}


def _add_log(message: str, details: dict | None = None) -> None:
    STATE.setdefault("logs", []).append({"message": message, "details": details or {}})


def _config_from(data: Dict[str, Any]) -> GraphConfig:
    anchor = data.get("anchor")
    return GraphConfig(
        critical_tolerance_seconds=float(data.get("tolerance", 1.0)),
        default_duration=int(data.get("default_duration", 1)),
        anchor=datetime.fromisoformat(anchor) if anchor else None,
    )


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@app.errorhandler(SnapshotError)
def snapshot_error(exc: SnapshotError):
    _add_log("web.snapshot.error", {"error": str(exc)})
    return jsonify({"ok": False, "error": str(exc)}), 400


@app.get("/api/logs")
def get_logs():
    """Return the event log of the most recent request."""

    return jsonify(STATE.get("logs", []))


@app.post("/api/schedule")
def schedule():
    """Return order, critical path and per-task times for a snapshot."""

    data = request.get_json(force=True, silent=True) or {}
    STATE["logs"] = []
    try:
        config = _config_from(data)
    except (TypeError, ValueError) as exc:
        return jsonify({"ok": False, "error": f"Invalid configuration: {exc}"}), 400
    graph = RecordSnapshotSource(extract_records(data), config=config).load()

    report = ScheduleEngine(config=config).analyze(graph, log=_add_log)
    payload = {"ok": True, **report.to_dict(), "logs": STATE.get("logs", [])}
    return jsonify(payload)


@app.post("/api/validate-dependencies")
def validate():
    """Validate a proposed dependency set, as done before saving a todo."""

    data = request.get_json(force=True, silent=True) or {}
    dependency_ids = data.get("dependencyIds")
    if not isinstance(dependency_ids, list):
        return jsonify({"error": "dependencyIds must be an array"}), 400

    STATE["logs"] = []
    try:
        todo_id = _optional_int(data.get("todoId"))
        dep_ids = [int(dep_id) for dep_id in dependency_ids]
        due_raw = data.get("dueDate")
        due_date = datetime.fromisoformat(str(due_raw).replace("Z", "+00:00")) if due_raw else None
    except (TypeError, ValueError) as exc:
        return jsonify({"error": f"Invalid request: {exc}"}), 400

    graph = RecordSnapshotSource(extract_records(data), config=_config_from({})).load()
    result = validate_dependencies(
        graph,
        NEW_TASK_ID if todo_id is None else todo_id,
        dep_ids,
        due_date=due_date,
        log=_add_log,
    )
    return jsonify(result.to_dict())


@app.post("/api/available-dependencies")
def available():
    """List the todos that may be chosen as dependencies."""

    data = request.get_json(force=True, silent=True) or {}
    STATE["logs"] = []
    try:
        exclude_id = _optional_int(data.get("excludeId"))
    except (TypeError, ValueError):
        return jsonify({"error": "excludeId must be an integer"}), 400

    graph = RecordSnapshotSource(extract_records(data)).load()
    tasks = available_dependencies(graph, exclude_id=exclude_id)
    _add_log("web.available.result", {"count": len(tasks), "exclude_id": exclude_id})
    return jsonify([task.to_dict() for task in tasks])


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))
    app.run(host="0.0.0.0", port=port, debug=False)
