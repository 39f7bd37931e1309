"""Core event ordering engine"""
