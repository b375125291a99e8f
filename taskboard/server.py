#!/usr/bin/env python3
"""
Taskboard API Server
--------------------
JSON API over the SQLite task database. The board client's gateway calls
PATCH /api/tasks/<id> to persist drag-and-drop moves.

Usage:
    python -m taskboard.server --port 3000 --db ./tasks.db

API:
    GET    /api/tasks          → { tasks, count }   (?q, status, priority, assignee_id, case_id)
    GET    /api/board          → { columns, counts, completion }
    GET    /api/tasks/<id>     → { task }
    POST   /api/tasks          → 201 { task }
    PATCH  /api/tasks/<id>     → { task }   body: { status, expected_status? }
                                 409 on expected_status mismatch, 422 if locked
    DELETE /api/tasks/<id>     → { success, id }
    GET    /health             → { status, db }
"""
import argparse
import logging
import sys
from typing import Optional

from flask import Flask, jsonify, request

from .config import Config
from .database import StatusConflict, TaskDatabase, TaskLocked, TaskNotFound
from .projection import TaskFilters, column_counts, project
from .schema import (
    Task,
    TaskPriority,
    TaskStatus,
    TaskValidationError,
    completion,
    validate_task_input,
)

logger = logging.getLogger(__name__)


def _filters_from_args(args) -> Optional[TaskFilters]:
    priority = args.get("priority")
    assignee_id = args.get("assignee_id")
    case_id = args.get("case_id")
    if not (priority or assignee_id or case_id):
        return None
    return TaskFilters(
        priority=TaskPriority.from_str(priority) if priority else None,
        assignee_id=assignee_id or None,
        case_id=case_id or None,
    )


def create_app(db_path: str) -> Flask:
    app = Flask(__name__)
    db = TaskDatabase(db_path)
    app.config["TASK_DB"] = db

    @app.errorhandler(TaskValidationError)
    def handle_validation(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(TaskNotFound)
    def handle_not_found(e):
        return jsonify({"error": "Task not found"}), 404

    # ── Routes ───────────────────────────────────────────────────────────────

    @app.route("/api/tasks", methods=["GET"])
    def api_list_tasks():
        status = request.args.get("status")
        tasks = db.list(
            status=TaskStatus.from_str(status) if status else None,
            search=request.args.get("q", ""),
            filters=_filters_from_args(request.args),
        )
        return jsonify({"tasks": [t.to_dict() for t in tasks], "count": len(tasks)})

    @app.route("/api/board", methods=["GET"])
    def api_board():
        tasks = db.list()
        board = project(tasks, request.args.get("q", ""), _filters_from_args(request.args))
        return jsonify({
            "columns": {s.value: [t.to_dict() for t in col] for s, col in board.items()},
            "counts": column_counts(board),
            "completion": completion(tasks),
        })

    @app.route("/api/tasks/<task_id>", methods=["GET"])
    def api_get_task(task_id):
        return jsonify({"task": db.get(task_id).to_dict()})

    @app.route("/api/tasks", methods=["POST"])
    def api_create_task():
        data = request.get_json(force=True, silent=True) or {}
        fields = validate_task_input(data)
        task = Task(id=db.next_task_id(), **fields)
        db.add(task)
        return jsonify({"task": task.to_dict()}), 201

    @app.route("/api/tasks/<task_id>", methods=["PATCH"])
    def api_update_status(task_id):
        data = request.get_json(force=True, silent=True) or {}
        if not data.get("status"):
            return jsonify({"error": "status is required"}), 400
        new_status = TaskStatus.from_str(data["status"])
        expected = data.get("expected_status")
        expected = TaskStatus.from_str(expected) if expected else None

        try:
            task = db.update_status(task_id, new_status, expected=expected)
        except StatusConflict as e:
            return jsonify({
                "error": str(e),
                "current_status": e.current.value,
            }), 409
        except TaskLocked as e:
            return jsonify({"error": str(e)}), 422
        return jsonify({"task": task.to_dict()})

    @app.route("/api/tasks/<task_id>", methods=["DELETE"])
    def api_delete_task(task_id):
        db.delete(task_id)
        return jsonify({"success": True, "id": task_id})

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "db": db.db_path})

    return app


# ── Main ─────────────────────────────────────────────────────────────────────

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Taskboard API server")
    parser.add_argument("--config", help="Path to taskboard.yaml")
    parser.add_argument("--host", help="Bind address (use 0.0.0.0 to expose on network)")
    parser.add_argument("--port", type=int)
    parser.add_argument("--db", help="Path to tasks.db (overrides TASKBOARD_DB env var)")
    args = parser.parse_args(argv)

    cfg = Config.load(args.config)
    if args.db:
        cfg.db_path = args.db
    host = args.host or cfg.host
    port = args.port or cfg.port

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger.info(f"Serving http://{host}:{port} (db: {cfg.db_path})")

    app = create_app(cfg.db_path)
    app.run(host=host, port=port, debug=False, threaded=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
