# Issue board client: session, projects, issues, and the Kanban board view
#
# Components:
#   schema.py    - Data model (Identity, Project, Issue, IssueStatus, drafts)
#   events.py    - Subscribe/notify primitive shared by the stores
#   backend.py   - Thin REST client for the hosted auth + database backend
#   session.py   - Current identity, sign-in/sign-up/sign-out
#   projects.py  - Project list and the selected-project pointer
#   issues.py    - Issues of one project, refetched when the project changes
#   board.py     - Status columns, drag-and-drop moves, board stats
#   workspace.py - Wires the stores together for one signed-in user
#   config.py    - YAML + environment configuration
