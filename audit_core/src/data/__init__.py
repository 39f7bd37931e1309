"""Audit event records and export loading"""
