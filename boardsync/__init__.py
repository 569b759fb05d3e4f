# boardsync: ordered task board with optimistic sync and rollback
#
# Components:
#   schema.py     - Data model (Task, Column, Board, TaskDraft, Priority)
#   positions.py  - Integer sort keys derived from column order
#   moves.py      - Drag-and-drop move resolution
#   gateway.py    - Async store interface (BoardGateway)
#   store.py      - SQLite persistence + SqliteGateway
#   client.py     - HTTP gateway for a remote boardsync server
#   controller.py - Optimistic apply / reconcile / rollback
#   snapshot.py   - Local render cache of the last published board
#   server.py     - Flask JSON API over the store
#   config.py     - YAML + environment configuration
#   session.py    - Build a controller (and cache) from a Config
