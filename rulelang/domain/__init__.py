"""
Program AST, enumerations, and trace/result models.

Nothing in this package imports from ``rulelang.compiler`` or
``rulelang.engine``.
"""
