# Teamboard: daily reports on a calendar and a shared kanban board
#
# Components:
#   schema.py  - Data model (User, Report, KanbanTask, TaskStatus, TaskPriority)
#   store.py   - SQLite persistence layer (UserStore, ReportStore, TaskStore)
#   errors.py  - Error taxonomy shared by server and client
#   config.py  - YAML-backed runtime configuration
#   client.py  - HTTP client for the REST API
#   views.py   - Snapshots and pure board/calendar derivations
#   cli.py     - Terminal front end over client + views
