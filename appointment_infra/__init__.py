"""
Shared settings and export names for the appointment infrastructure stack.
"""
