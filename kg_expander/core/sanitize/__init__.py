"""Sanitization of untrusted generator output.

Everything the model returns passes through ``sanitize_expansion`` before it
reaches the graph; nothing downstream re-checks ids, depths or edge shape.
"""
