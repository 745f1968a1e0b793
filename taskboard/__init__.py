# Taskboard client: boards, columns and cards over the REST API.
#
# Components:
#   schema.py        - Data model (Board, Column, Card, Member, ChatBubble, Priority)
#   reorder.py       - Pure card reordering + drag gesture state machine
#   api.py           - HTTP client for the board backend
#   store.py         - SQLite key/value store for token, user and chat state
#   session.py       - Login / logout and the persisted user profile
#   board_view.py    - Board page controller (optimistic moves, reload on failure)
#   dashboard.py     - Board list, members and profile controller
#   assistant.py     - Persisted chat assistant session
#   forms.py         - Client-side input validation
#   notifications.py - Transient success / error notifications
#   config.py        - YAML + environment configuration

__version__ = "0.3.0"
