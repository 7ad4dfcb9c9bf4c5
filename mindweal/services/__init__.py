"""External integrations (Google Calendar, notifications)"""
