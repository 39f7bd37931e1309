"""Stage classification, dependency extraction and sequencing"""
