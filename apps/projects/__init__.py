"""
Projects application.

Teams, projects, assignments of projects to teams, and the tasks team
leaders hand out inside an assignment.
"""
