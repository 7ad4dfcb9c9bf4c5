"""MindWeal scheduling backend"""
