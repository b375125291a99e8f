# Taskboard: drag-and-drop task board state, optimistic moves, task API
#
# Components:
#   schema.py        - Data model (Task, TaskStatus, TaskPriority, validation)
#   store.py         - In-memory task store (single source of truth)
#   projection.py    - Five-column board projection, search and filters
#   drag.py          - Drag session controller (gesture → intent)
#   gateway.py       - Status transition gateway (HTTP, typed failures)
#   optimistic.py    - Optimistic apply with guarded rollback
#   board.py         - TaskBoard state container wiring it all together
#   notifications.py - Dismissible user-visible notifications
#   audit.py         - JSONL audit trail of board moves
#   database.py      - SQLite persistence with compare-and-set status updates
#   server.py        - Flask JSON API over the database
#   config.py        - YAML / environment configuration

__version__ = "0.1.0"
