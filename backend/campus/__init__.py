"""Campus community backend.

Channels, events, notifications, search, a course-swap marketplace and a
GPA tracker served by a FastAPI application. The pure matching and GPA
logic lives in `swaps` and `gpa`; `services` wires it to the repositories.
"""
