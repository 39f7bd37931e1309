"""Ordering parameters"""
