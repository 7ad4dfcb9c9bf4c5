"""Therapist domain - weekly schedule, blocked time, session types, settings, archive/restore"""
