"""
ComplyWatch API Package
"""
