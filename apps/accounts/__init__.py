"""
Accounts application.

Provides:
- Account identity with a stored account class (Admin, ProjectManager, User)
- Session tokens (JWT) for login, logout and status
- Effective role resolution from team membership
- Administrative batch updates, deletion and promotion
"""
