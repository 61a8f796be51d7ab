"""
Event engine and exception hierarchy shared by client and server.
"""
