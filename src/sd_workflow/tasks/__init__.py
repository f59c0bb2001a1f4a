"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Project, TaskStatus)
- datekey.py: deadline -> sortable integer key
- ordering.py: grouped deadline ordering (active / pending / confirmed)
- workflow.py: project templates and id helpers
- task_actions.py: role-checked lifecycle actions that build patches
"""
