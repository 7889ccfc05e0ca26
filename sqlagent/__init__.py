"""
sqlagent

Natural language to SQL: schema-context retrieval, tool-calling generation,
validation, sandboxed execution and per-connection knowledge-base builds.
"""

__version__ = "0.1.0"
