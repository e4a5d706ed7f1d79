"""Core application plumbing: configuration, database, security and errors"""
