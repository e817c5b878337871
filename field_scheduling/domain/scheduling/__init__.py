"""
Scheduling core - pure logic shared by the assignment, conflict, booking status
and confirmation domains. Nothing in here touches the database.
"""
