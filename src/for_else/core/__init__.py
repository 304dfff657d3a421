"""
Core loop-else machinery: syntax, boundary resolution, break rewriting,
expansion, configuration and the reference interpreter.
"""
