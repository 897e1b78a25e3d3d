"""
XFS module - files stored in a database table.

A file is identified by a caller chosen string id (often a path such as
"reports/2024/summary.pdf") and carries its name, extension, an optional
tag, its size, a modification time and the binary content.
"""
