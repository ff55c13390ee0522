"""Repository layer.

Services:
- tasks.py: Task CRUD, statistics and date-range queries
- events.py: Calendar event CRUD and date-range queries
- files.py: Stored file metadata and bytes on disk
- attachments.py: Task <-> file link table
- auth.py: Users, password hashing, sessions and JWT management
- user_data.py: Per-user key/value preferences
- maintenance.py: Operator routines (duplicate cleanup, orphan sweep)
"""
