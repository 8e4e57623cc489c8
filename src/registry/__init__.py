"""
Entity Registry Module.

Static list of tracked hotels and their store table identifiers.
"""
